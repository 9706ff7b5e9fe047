"""
Schema Registry

Maps model names to their registrations. Populated at startup, read-only
once frozen.
"""
from typing import Any, Dict, Iterator, List, Optional
from sqlalchemy import inspect
import structlog

from dapi.registry.schema import FieldSpec, ListModifier, ModelRegistration, ModelSchema, RelationKind

logger = structlog.get_logger()


class RegistryError(Exception):
    """Invalid registration or lookup."""
    pass


class SchemaRegistry:
    """Model name -> ModelRegistration lookup (case-insensitive)."""

    def __init__(self):
        self._models: Dict[str, ModelRegistration] = {}
        self._frozen = False

    def register(self, model: Any, **hooks) -> ModelRegistration:
        """
        Register a model.

        Args:
            model: A ``ModelRegistration``, a ``ModelSchema`` or a SQLAlchemy
                declarative class (converted with ``schema_from_model``)
            **hooks: Hook callables passed to ``ModelRegistration`` when
                ``model`` is not already a registration

        Returns:
            The stored registration
        """
        if self._frozen:
            raise RegistryError("Registry is frozen; register models at startup")

        if isinstance(model, ModelRegistration):
            if hooks:
                raise RegistryError("Pass hooks on the ModelRegistration itself")
            registration = model
        elif isinstance(model, ModelSchema):
            registration = ModelRegistration(schema=model, **hooks)
        else:
            list_modifier = hooks.pop("list_modifier", None)
            name = hooks.pop("name", None)
            schema = schema_from_model(model, name=name, list_modifier=list_modifier)
            registration = ModelRegistration(schema=schema, **hooks)

        key = registration.name.lower()
        if key in self._models:
            raise RegistryError(f"Model '{registration.name}' is already registered")

        self._models[key] = registration
        logger.debug("model_registered", model=registration.name, table=registration.schema.table)
        return registration

    def freeze(self) -> None:
        """Reject further registrations."""
        self._frozen = True

    def get(self, name: str) -> Optional[ModelRegistration]:
        return self._models.get(name.lower())

    def get_schema(self, name: str) -> Optional[ModelSchema]:
        registration = self.get(name)
        return registration.schema if registration else None

    def require_schema(self, name: str) -> ModelSchema:
        schema = self.get_schema(name)
        if schema is None:
            raise RegistryError(f"Unknown model '{name}'")
        return schema

    def names(self) -> List[str]:
        return [r.name for r in self._models.values()]

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._models

    def __iter__(self) -> Iterator[ModelRegistration]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)


def schema_from_model(model_cls, name: Optional[str] = None,
                      list_modifier: Optional[ListModifier] = None) -> ModelSchema:
    """
    Build a ``ModelSchema`` from a SQLAlchemy declarative class.

    Column attributes become scalar fields; relationships become relation
    fields (many-to-one -> ONE_TO_ONE, one-to-many -> ONE_TO_MANY,
    secondary table -> MANY_TO_MANY).
    """
    mapper = inspect(model_cls)
    table = mapper.local_table

    fields: List[FieldSpec] = []
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = object
        fields.append(FieldSpec(
            name=prop.key,
            column=column.name,
            python_type=python_type,
            nullable=bool(column.nullable),
            private=bool(column.info.get("private", False)),
        ))

    for rel in mapper.relationships:
        direction = rel.direction.name
        target = rel.mapper.class_.__name__

        if rel.secondary is not None:
            fields.append(FieldSpec(
                name=rel.key,
                relation=RelationKind.MANY_TO_MANY,
                target=target,
                through=rel.secondary.name,
                through_columns=(
                    rel.synchronize_pairs[0][1].name,
                    rel.secondary_synchronize_pairs[0][1].name,
                ),
            ))
        elif direction == "MANYTOONE":
            fields.append(FieldSpec(
                name=rel.key,
                relation=RelationKind.ONE_TO_ONE,
                target=target,
                foreign_key=list(rel.local_columns)[0].name,
            ))
        elif direction == "ONETOMANY":
            fields.append(FieldSpec(
                name=rel.key,
                relation=RelationKind.ONE_TO_MANY,
                target=target,
                foreign_key=list(rel.remote_side)[0].name,
            ))

    pk_columns = [c.name for c in mapper.primary_key]
    if len(pk_columns) != 1:
        raise RegistryError(f"{model_cls.__name__} must have exactly one primary key column")
    pk_field = next(f.name for f in fields if f.column == pk_columns[0])

    return ModelSchema(
        name=name or model_cls.__name__,
        table=table.name,
        fields=tuple(fields),
        primary_key=pk_field,
        list_modifier=list_modifier,
    )
