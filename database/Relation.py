from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from recordmapper.database.active_record.utils.ModelCollection import ModelCollection
from recordmapper.utilities.naming import foreign_key_for

if TYPE_CHECKING:
    from recordmapper.database.ActiveRecord import ActiveRecord
    from recordmapper.database.Schema import Schema

HAS_ONE = "has_one"
HAS_MANY = "has_many"
BELONGS_TO = "belongs_to"

Constraints = Union[Callable[["ActiveRecord"], Any], Mapping[str, Any], None]


@dataclass
class RelationDescriptor:
    """
    How one record type points at another.

    ``target`` is a Schema, or a zero-argument callable returning one when
    the two schemas reference each other.

    ``local_key`` is the join column:
        has_one / has_many -> column on the target holding this record's key
        belongs_to         -> column on this record holding the target's key
    Left empty, it is guessed as ``<singular table>_id``.

    ``constraints`` run on the target query before the key filter: either a
    callable receiving the target record, or a mapping of builder method
    name to its argument(s), e.g. ``{"order_by": "id DESC", "limit": 5}``.
    """
    kind: str
    target: Union["Schema", Callable[[], "Schema"]]
    local_key: Optional[str] = None
    constraints: Constraints = None
    back_reference: Optional[str] = None

    def __post_init__(self):
        if self.kind not in (HAS_ONE, HAS_MANY, BELONGS_TO):
            raise ValueError(f"Unknown relation kind '{self.kind}'")

    @property
    def many(self) -> bool:
        return self.kind == HAS_MANY

    def target_schema(self) -> "Schema":
        from recordmapper.database.Schema import Schema

        target = self.target
        if not isinstance(target, Schema):
            target = target()
        return target

    def key_for(self, owner: "ActiveRecord") -> str:
        if self.local_key:
            return self.local_key
        if self.kind == BELONGS_TO:
            return foreign_key_for(self.target_schema().table)
        return foreign_key_for(owner.get_table())

    def apply_constraints(self, query: "ActiveRecord"):
        if self.constraints is None:
            return query
        if callable(self.constraints):
            self.constraints(query)
            return query
        for method, args in self.constraints.items():
            if not isinstance(args, tuple):
                args = (args,)
            getattr(query, method)(*args)
        return query

    def resolve(self, owner: "ActiveRecord"):
        target = self.target_schema()
        key = self.key_for(owner)

        if self.kind == BELONGS_TO:
            column, value = target.primary_key, owner.get(key)
        else:
            column, value = key, owner.get(owner.get_primary_key_column())

        if value is None:
            return ModelCollection([]) if self.many else None

        query = owner.new_related(target)
        self.apply_constraints(query)
        query.scope(column, value)

        if self.many:
            related = query.find_all()
            found = list(related)
        else:
            related = query.find()
            found = [related] if related is not None else []

        if self.back_reference:
            for record in found:
                record.attach_relation(self.back_reference, owner)
        return related


def has_one(target, local_key: str = None, constraints: Constraints = None,
            back_reference: str = None) -> RelationDescriptor:
    return RelationDescriptor(HAS_ONE, target, local_key, constraints, back_reference)


def has_many(target, local_key: str = None, constraints: Constraints = None,
             back_reference: str = None) -> RelationDescriptor:
    return RelationDescriptor(HAS_MANY, target, local_key, constraints, back_reference)


def belongs_to(target, local_key: str = None, constraints: Constraints = None,
               back_reference: str = None) -> RelationDescriptor:
    return RelationDescriptor(BELONGS_TO, target, local_key, constraints, back_reference)
