from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from recordmapper.database.Events import RecordHooks
from recordmapper.database.Relation import RelationDescriptor
from recordmapper.utilities.naming import table_name_for

if TYPE_CHECKING:
    from recordmapper.database.ActiveRecord import ActiveRecord


@dataclass
class Schema:
    """
    Everything that makes one record type differ from another: its table,
    its primary key, its relations and the hook-set its records dispatch to.
    """
    table: str
    primary_key: str = "id"
    relations: dict[str, RelationDescriptor] = field(default_factory=dict)
    hooks: Optional[RecordHooks] = None

    @classmethod
    def from_name(cls, model_name: str, **kwargs: Any) -> "Schema":
        """Schema.from_name("UserContact") -> table "user_contacts"."""
        return cls(table_name_for(model_name), **kwargs)

    def relate(self, name: str, relation: RelationDescriptor) -> "Schema":
        self.relations[name] = relation
        return self

    def new_record(self, connection=None, hooks: Optional[RecordHooks] = None, **attributes: Any) -> "ActiveRecord":
        from recordmapper.database.ActiveRecord import ActiveRecord

        return ActiveRecord(connection, schema=self, hooks=hooks, **attributes)
