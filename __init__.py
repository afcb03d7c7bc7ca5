from recordmapper.core_services.Database import Database, ExecuteResult, NoResultsFound
from recordmapper.core_services.Sqlite3Database import Sqlite3Database
from recordmapper.database.ActiveRecord import ActiveRecord
from recordmapper.database.Events import LIFECYCLE_EVENTS, RecordHooks
from recordmapper.database.QueryBuilder import QueryBuilder, Raw
from recordmapper.database.Relation import (
    BELONGS_TO,
    HAS_MANY,
    HAS_ONE,
    RelationDescriptor,
    belongs_to,
    has_many,
    has_one,
)
from recordmapper.database.Schema import Schema
from recordmapper.database.Statement import Clause, Statement
from recordmapper.database.active_record.Logging import query_logging
from recordmapper.database.active_record.utils.ModelCollection import ModelCollection
from recordmapper.database.active_record.utils.decorators import on
from recordmapper.database.exceptions import (
    ActiveRecordError,
    MisuseError,
    RecordNotFound,
    StaleRecordError,
    ValidationError,
)

__all__ = [
    "ActiveRecord",
    "ActiveRecordError",
    "BELONGS_TO",
    "Clause",
    "Database",
    "ExecuteResult",
    "HAS_MANY",
    "HAS_ONE",
    "LIFECYCLE_EVENTS",
    "MisuseError",
    "ModelCollection",
    "NoResultsFound",
    "QueryBuilder",
    "Raw",
    "RecordHooks",
    "RecordNotFound",
    "RelationDescriptor",
    "Schema",
    "Sqlite3Database",
    "StaleRecordError",
    "Statement",
    "ValidationError",
    "belongs_to",
    "has_many",
    "has_one",
    "on",
    "query_logging",
]
