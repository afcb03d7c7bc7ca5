import base64
import logging
from copy import deepcopy
from datetime import date, datetime
from typing import Any, Mapping, Optional, Self

from recordmapper.core_services.Database import Database, ExecuteResult
from recordmapper.database.Events import Events, RecordHooks
from recordmapper.database.QueryBuilder import QueryBuilder
from recordmapper.database.Relation import BELONGS_TO
from recordmapper.database.Schema import Schema
from recordmapper.database.Statement import Statement
from recordmapper.database.active_record.utils.ModelCollection import ModelCollection
from recordmapper.database.exceptions import MisuseError, RecordNotFound, StaleRecordError, ValidationError
from recordmapper.utilities.DataKlass import DataKlass

logger = logging.getLogger("orm.record")

_MISSING = object()


class ActiveRecord(QueryBuilder, Events):
    """
    One row of a named table, plus the fluent query that finds, writes or
    removes it.

    Records are built by composition rather than per-table subclasses::

        users = Schema("users", relations={"contacts": has_many(contacts)})
        user = ActiveRecord(db, schema=users)
        user.set("name", "Bobby Tables").insert()

    Every terminal operation (find, find_all, count, insert, update, save,
    delete) consumes the pending query and clears it whether or not the
    statement succeeds.
    """

    def __init__(
        self,
        connection: Optional[Database] = None,
        schema: Optional[Schema] = None,
        hooks: Optional[RecordHooks] = None,
        table: Optional[str] = None,
        primary_key: Optional[str] = None,
        **attributes: Any,
    ):
        self.schema = schema or Schema(table or "")
        self.hooks = hooks or self.schema.hooks or RecordHooks()

        self.__data__: dict[str, Any] = {}
        self.__original__: dict[str, Any] = {}
        self.__dirty__: set[str] = set()
        self.__custom__: dict[str, Any] = {}
        self.__relation_cache__: dict[str, Any] = {}
        self.__persisted_key__: Any = None
        self.__generated_key__ = False
        self.__hydrated__ = False
        self.__destroyed__ = False
        self.__last_statement__: Optional[Statement] = None

        config = DataKlass({
            "connection": connection,
            "table": table or self.schema.table,
            "primary_key": primary_key or self.schema.primary_key,
        })
        self._adopt(config)
        super().__init__(config.get("table") or "", self.placeholder, self.quote_char)

        self.fire_event("on_construct", self, config)
        self._adopt(config)
        if not self.__table__:
            raise MisuseError("A record needs a table: pass a schema, a table name, or set it in on_construct().")

        for field, value in attributes.items():
            self.set(field, value)

    def _adopt(self, config: DataKlass):
        self.db = config.get("connection")
        self.__table__ = config.get("table") or ""
        self.__primary_key__ = config.get("primary_key") or "id"
        self.placeholder = getattr(self.db, "placeholder", QueryBuilder.placeholder)
        self.quote_char = getattr(self.db, "quote_char", QueryBuilder.quote_char)

    def __repr__(self):
        state = "destroyed" if self.__destroyed__ else ("new" if self.is_new() else "persisted")
        return f"<ActiveRecord {self.__table__} {state} {self.__data__!r}>"

    # --------------------------------------------------------------------------
    # Basic Model Information
    # --------------------------------------------------------------------------

    def get_table(self) -> str:
        return self.__table__

    def get_primary_key_column(self) -> str:
        return self.__primary_key__

    def is_new(self) -> bool:
        return self.__persisted_key__ is None

    def is_hydrated(self) -> bool:
        return self.__hydrated__

    def is_destroyed(self) -> bool:
        return self.__destroyed__

    def built_sql(self) -> Optional[str]:
        """SQL of the last statement this record executed."""
        return self.__last_statement__.sql if self.__last_statement__ else None

    def built_params(self) -> tuple:
        return self.__last_statement__.params if self.__last_statement__ else ()

    def last_statement(self) -> Optional[Statement]:
        return self.__last_statement__

    def _guard_destroyed(self):
        if self.__destroyed__:
            raise StaleRecordError(self.__table__)

    def _connection(self) -> Database:
        if self.db is None:
            raise MisuseError(f"No storage connection bound to '{self.__table__}' record.")
        return self.db

    # --------------------------------------------------------------------------
    # Attribute Access
    # --------------------------------------------------------------------------

    def get(self, field: str, default: Any = None) -> Any:
        """
        Custom data first, then relations (loaded and cached on first access),
        then the row's own attributes.
        """
        self._guard_destroyed()
        if field in self.__custom__:
            return self.__custom__[field]
        if field in self.__relation_cache__:
            return self.__relation_cache__[field]
        if field in self.schema.relations:
            return self._load_relation(field)
        return self.__data__.get(field, default)

    def set(self, field: str, value: Any) -> Self:
        self._guard_destroyed()
        previous = self.__data__.get(field, _MISSING)
        self.__data__[field] = value
        if self.__original__.get(field, _MISSING) != value:
            self.__dirty__.add(field)
        else:
            self.__dirty__.discard(field)
        if previous is _MISSING or previous != value:
            self._forget_relations_keyed_on(field)
        return self

    def __getitem__(self, field: str) -> Any:
        return self.get(field)

    def __setitem__(self, field: str, value: Any):
        self.set(field, value)

    def __contains__(self, field: str) -> bool:
        return field in self.__data__

    def fill(self, **values: Any) -> Self:
        """Hydrate known persisted state without marking anything dirty."""
        self._guard_destroyed()
        self.__data__.update(values)
        self._sync_original()
        self.__persisted_key__ = self.__data__.get(self.__primary_key__)
        return self

    def set_custom_data(self, name: str, value: Any) -> Self:
        """Attach a computed value that is readable via get() but never persisted."""
        self._guard_destroyed()
        self.__custom__[name] = value
        return self

    def attach_relation(self, name: str, value: Any) -> Self:
        self.__relation_cache__[name] = value
        return self

    def attributes(self) -> dict[str, Any]:
        self._guard_destroyed()
        return dict(self.__data__)

    # --------------------------------------------------------------------------
    # Change Tracking
    # --------------------------------------------------------------------------

    def is_dirty(self, field: Optional[str] = None) -> bool:
        self._guard_destroyed()
        if field is None:
            return bool(self.__dirty__)
        return field in self.__dirty__

    def get_dirty(self) -> dict[str, Any]:
        self._guard_destroyed()
        return {k: v for k, v in self.__data__.items() if k in self.__dirty__}

    def was_changed(self, field: str) -> bool:
        """
        Check if a specific field was changed compared to the original state.
        """
        self._guard_destroyed()
        return self.__original__.get(field, _MISSING) != self.__data__.get(field, _MISSING)

    def dirty(self, overrides: Optional[Mapping[str, Any]] = None) -> Self:
        """
        ``dirty()`` forgets pending changes without reverting any value.
        ``dirty({...})`` assigns each value and marks each key dirty, even
        when it equals what was persisted.
        """
        self._guard_destroyed()
        if overrides is None:
            self._sync_original()
            return self
        for field, value in dict(overrides).items():
            self.__data__[field] = value
            self.__dirty__.add(field)
            self._forget_relations_keyed_on(field)
        return self

    def _sync_original(self):
        self.__original__ = deepcopy(self.__data__)
        self.__dirty__ = set()

    def reset(self, include_query: bool = True) -> Self:
        """Turn this instance back into a fresh, new record of the same table."""
        self.__data__ = {}
        self.__original__ = {}
        self.__dirty__ = set()
        self.__custom__ = {}
        self.__relation_cache__ = {}
        self.__persisted_key__ = None
        self.__generated_key__ = False
        self.__hydrated__ = False
        self.__destroyed__ = False
        if include_query:
            self.reset_query()
        return self

    # --------------------------------------------------------------------------
    # Relationships
    # --------------------------------------------------------------------------

    def new_related(self, schema: Schema) -> "ActiveRecord":
        """A fresh record of another schema bound to this record's connection."""
        return ActiveRecord(self.db, schema=schema)

    def _load_relation(self, name: str):
        related = self.schema.relations[name].resolve(self)
        self.__relation_cache__[name] = related
        return related

    def _forget_relations_keyed_on(self, field: str):
        for name, relation in self.schema.relations.items():
            if name not in self.__relation_cache__:
                continue
            if relation.kind == BELONGS_TO:
                keyed = relation.key_for(self) == field
            else:
                keyed = field == self.__primary_key__
            if keyed:
                del self.__relation_cache__[name]

    # --------------------------------------------------------------------------
    # Execution
    # --------------------------------------------------------------------------

    def _query(self, statement: Statement) -> list[dict[str, Any]]:
        self.__last_statement__ = statement
        logger.debug("%s on '%s': %s", statement.kind.upper(), statement.table, statement.sql)
        return self._connection().query(statement.sql, statement.params)

    def _execute(self, statement: Statement) -> ExecuteResult:
        self.__last_statement__ = statement
        logger.debug("%s on '%s': %s", statement.kind.upper(), statement.table, statement.sql)
        return self._connection().execute(statement.sql, statement.params)

    def _spawn(self) -> "ActiveRecord":
        return self.__class__(
            self.db,
            schema=self.schema,
            hooks=self.hooks,
            table=self.__table__,
            primary_key=self.__primary_key__,
        )

    def _hydrate(self, row: Mapping[str, Any]) -> Self:
        self.__data__ = dict(row)
        self._sync_original()
        self.__relation_cache__ = {}
        self.__persisted_key__ = self.__data__.get(self.__primary_key__)
        self.__generated_key__ = False
        self.__hydrated__ = True
        return self

    # --------------------------------------------------------------------------
    # Retrieval
    # --------------------------------------------------------------------------

    def find(self, id_: Any = None) -> Optional[Self]:
        """
        Load a single row into this record. Returns the record on a hit and
        None on a miss, in which case the attributes are left untouched.
        """
        try:
            self._guard_destroyed()
            self.fire_event("before_find", self)
            if id_ is not None:
                self.scope(self.__primary_key__, id_)
            self.limit(1)
            rows = self._query(self.compile("select"))
        finally:
            self.reset_query()

        if not rows:
            logger.debug("find on '%s' matched nothing", self.__table__)
            return None

        self._hydrate(rows[0])
        self.fire_event("after_find", self)
        return self

    def find_or_fail(self, id_: Any = None) -> Self:
        found = self.find(id_)
        if found is None:
            raise RecordNotFound(f"No '{self.__table__}' record matched (id={id_!r})")
        return found

    def find_all(self) -> ModelCollection:
        """One new record per matching row, in the order storage returns them."""
        try:
            self._guard_destroyed()
            self.fire_event("before_find_all", self)
            rows = self._query(self.compile("select"))
        finally:
            self.reset_query()

        records = ModelCollection([self._spawn()._hydrate(row) for row in rows])
        self.fire_event("after_find_all", records)
        return records

    def refresh(self) -> Self:
        if self.is_new():
            raise MisuseError("Cannot refresh a record without a persisted primary key.")
        self.find(self.__persisted_key__)
        return self

    def count(self) -> int:
        """
        Number of rows matching the pending clauses. A single distinct
        column counts its distinct values; grouped counts are rejected.
        """
        try:
            self._guard_destroyed()
            if self.group_by_columns or self.having_conditions:
                raise ValidationError("count() cannot be combined with group_by() or having().")
            if self.distinct_flag and len(self.columns) == 1 and self.columns != ["*"]:
                self.columns = [f"COUNT(DISTINCT {self.columns[0]}) AS aggregate"]
            else:
                self.columns = ["COUNT(*) AS aggregate"]
            self.distinct_flag = False
            self.order_by_clauses = []
            self.remove_limit()
            rows = self._query(self.compile("select"))
        finally:
            self.reset_query()
        if not rows:
            return 0
        return int(next(iter(rows[0].values())))

    # --------------------------------------------------------------------------
    # Persistence
    # --------------------------------------------------------------------------

    def insert(self) -> Self:
        """
        Write every non-null attribute as a new row.

        A key this record generated on an earlier insert is left out, so
        inserting the same instance twice creates two rows and the instance
        ends up representing the second one.
        """
        pk = self.__primary_key__
        try:
            self._guard_destroyed()
            self.fire_event("before_insert", self)
            self.fire_event("before_save", self)
            values = {
                field: value for field, value in self.__data__.items()
                if value is not None and not (field == pk and self.__generated_key__)
            }
            if not values:
                raise ValidationError(f"Nothing to insert into '{self.__table__}': no attributes are set.")
            result = self._execute(self.compile("insert", values=values))
        finally:
            self.reset_query()

        if pk in values:
            self.__generated_key__ = False
        else:
            self.__data__[pk] = result.lastrowid
            self.__generated_key__ = result.lastrowid is not None
        self._sync_original()
        self.__relation_cache__ = {}
        self.__persisted_key__ = self.__data__.get(pk)

        self.fire_event("after_insert", self)
        self.fire_event("after_save", self)
        return self

    def update(self) -> Self:
        """
        Write only the dirty fields, scoped by the persisted primary key.
        With nothing dirty no statement runs, but the hooks still fire.
        """
        executed = False
        try:
            self._guard_destroyed()
            if self.is_new():
                raise MisuseError(f"Cannot update a new '{self.__table__}' record; insert() it first.")
            self.fire_event("before_update", self)
            self.fire_event("before_save", self)
            if self.__dirty__:
                values = self.get_dirty()
                self.scope(self.__primary_key__, self.__persisted_key__)
                self._execute(self.compile("update", values=values))
                executed = True
        finally:
            self.reset_query()

        if executed:
            self._sync_original()
            self.__persisted_key__ = self.__data__.get(self.__primary_key__)
        else:
            logger.debug("update on '%s' skipped: nothing dirty", self.__table__)

        self.fire_event("after_update", self)
        self.fire_event("after_save", self)
        return self

    def save(self) -> Self:
        return self.insert() if self.is_new() else self.update()

    def delete(self) -> int:
        """Remove the row. The instance is unusable afterwards."""
        try:
            self._guard_destroyed()
            if self.is_new():
                raise MisuseError(f"Cannot delete a new '{self.__table__}' record.")
            self.fire_event("before_delete", self)
            self.scope(self.__primary_key__, self.__persisted_key__)
            result = self._execute(self.compile("delete"))
        finally:
            self.reset_query()

        self.fire_event("after_delete", self)
        self.__destroyed__ = True
        return result.rowcount

    # --------------------------------------------------------------------------
    # Serialization
    # --------------------------------------------------------------------------

    def to_dict(self) -> DataKlass:
        self._guard_destroyed()
        data = {key: _serialize(value) for key, value in self.__data__.items()}
        # loaded relations are serialized one level deep; back references would recurse
        for name, cached in self.__relation_cache__.items():
            if isinstance(cached, ActiveRecord):
                data[name] = {k: _serialize(v) for k, v in cached.attributes().items()}
            elif isinstance(cached, list):
                data[name] = [{k: _serialize(v) for k, v in r.attributes().items()} for r in cached]
            else:
                data[name] = None
        return DataKlass(data)


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("utf-8")
    return value
