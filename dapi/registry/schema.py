"""
Schema descriptors

A ``ModelSchema`` is built once per model at registration time and is
read-only afterwards, so it can be shared across request threads.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import enum


class RelationKind(str, enum.Enum):
    """How a field relates to another model."""
    NONE = "none"
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


@dataclass(frozen=True)
class FieldSpec:
    """
    One field of a model.

    Scalar fields have a ``column``. Relation fields usually don't:

    * ONE_TO_ONE: ``foreign_key`` is the local column holding the target's
      primary key.
    * ONE_TO_MANY: ``foreign_key`` is the column on the target table that
      points back to this model.
    * MANY_TO_MANY: ``through`` is the join table; ``through_columns`` is
      ``(this_model_column, target_column)`` and defaults to
      ``("<table>_id", "<target_table>_id")``.
    """
    name: str
    column: Optional[str] = None
    python_type: type = str
    nullable: bool = True
    relation: RelationKind = RelationKind.NONE
    target: Optional[str] = None
    foreign_key: Optional[str] = None
    through: Optional[str] = None
    through_columns: Optional[Tuple[str, str]] = None
    private: bool = False

    @property
    def is_relation(self) -> bool:
        return self.relation != RelationKind.NONE

    @property
    def is_scalar(self) -> bool:
        return self.column is not None and not self.is_relation


# (schema, user) -> (sql fragment with "?" placeholders, args)
ListModifier = Callable[["ModelSchema", Any], Tuple[str, Sequence[Any]]]

# (request) -> bool
RequestHook = Callable[[Any], bool]


@dataclass(frozen=True)
class ModelSchema:
    """Table metadata bound to a model name."""
    name: str
    table: str
    fields: Tuple[FieldSpec, ...]
    primary_key: str = "id"
    list_modifier: Optional[ListModifier] = None
    _by_key: Dict[str, FieldSpec] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        lookup: Dict[str, FieldSpec] = {}
        for spec in self.fields:
            if spec.name in lookup:
                raise ValueError(f"Duplicate field '{spec.name}' in model {self.name}")
            lookup[spec.name] = spec
        for spec in self.fields:
            if spec.column and spec.column not in lookup:
                lookup[spec.column] = spec
        object.__setattr__(self, "_by_key", lookup)

        if self.primary_key not in lookup or not lookup[self.primary_key].is_scalar:
            raise ValueError(f"Model {self.name} has no scalar primary key field '{self.primary_key}'")

    def get_field(self, key: str) -> Optional[FieldSpec]:
        """Look a field up by field name or column name."""
        return self._by_key.get(key)

    @property
    def pk_field(self) -> FieldSpec:
        return self._by_key[self.primary_key]

    @property
    def pk_column(self) -> str:
        return self.pk_field.column

    @property
    def scalar_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.is_scalar]

    @property
    def relation_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields if f.is_relation]

    @property
    def columns(self) -> List[str]:
        return [f.column for f in self.scalar_fields]

    def field_for_column(self, column: str) -> Optional[FieldSpec]:
        for spec in self.scalar_fields:
            if spec.column == column:
                return spec
        return None


@dataclass(frozen=True)
class ModelRegistration:
    """
    A schema plus the optional per-model hooks.

    Every hook is either a callable or ``None``; the read pipeline checks
    for ``None`` instead of probing the model for methods.
    """
    schema: ModelSchema
    disabled_read: Optional[RequestHook] = None
    disabled_write: Optional[RequestHook] = None
    public_read: Optional[RequestHook] = None
    public_write: Optional[RequestHook] = None
    log_read: Optional[RequestHook] = None
    log_write: Optional[RequestHook] = None
    response_hook: Optional[Callable[[Any, dict], dict]] = None

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def list_modifier(self) -> Optional[ListModifier]:
        return self.schema.list_modifier

    def disabled_hook(self, operation: str) -> Optional[RequestHook]:
        return self.disabled_read if operation == "read" else self.disabled_write

    def public_hook(self, operation: str) -> Optional[RequestHook]:
        return self.public_read if operation == "read" else self.public_write

    def log_hook(self, operation: str) -> Optional[RequestHook]:
        return self.log_read if operation == "read" else self.log_write
