"""
Registry Package - model schemas and their registrations
"""
from dapi.registry.schema import (
    FieldSpec,
    ListModifier,
    ModelRegistration,
    ModelSchema,
    RelationKind,
)
from dapi.registry.registry import RegistryError, SchemaRegistry, schema_from_model

__all__ = [
    "FieldSpec",
    "ListModifier",
    "ModelRegistration",
    "ModelSchema",
    "RelationKind",
    "RegistryError",
    "SchemaRegistry",
    "schema_from_model",
]
