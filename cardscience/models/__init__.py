from cardscience.models.card import CARD_SCHEMA, RawCard, card_document, card_id
from cardscience.models.document import Document
from cardscience.models.failure import (
    CardScienceError,
    ElementNotFoundError,
    FailureKind,
    FetchError,
    PageFailedError,
    RegistryFrozenError,
    SchemaMismatchError,
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
)
from cardscience.models.registry import build_registry
from cardscience.models.schema import ModelSchema, SchemaRegistry, ViewSpec, pluralize

__all__ = [
    "CARD_SCHEMA",
    "CardScienceError",
    "Document",
    "ElementNotFoundError",
    "FailureKind",
    "FetchError",
    "ModelSchema",
    "PageFailedError",
    "RawCard",
    "RegistryFrozenError",
    "SchemaMismatchError",
    "SchemaRegistry",
    "StoreConflictError",
    "StoreError",
    "StoreNotFoundError",
    "ViewSpec",
    "build_registry",
    "card_document",
    "card_id",
    "pluralize",
]
