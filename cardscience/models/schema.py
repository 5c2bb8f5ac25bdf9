"""
Document schemas and their declarative views.

A `ModelSchema` names a document type and the secondary indexes ("views")
kept over it. Views are plain data (`ViewSpec`): the schema name is injected
into each view's `where` clause when the design document is built, so no
query is ever persisted as code.

Schemas live in an explicit `SchemaRegistry` built at startup and passed to
whatever needs it. The registry is append-only and is frozen before design
documents are installed or a crawl begins.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from cardscience.models.failure import RegistryFrozenError

logger = logging.getLogger(__name__)

DESIGN_PREFIX = "_design/"
DESIGN_LANGUAGE = "cardscience-query"
TYPE_FIELD = "type"

VALID_REDUCERS = frozenset({"_count", "_sum"})


def pluralize(name: str) -> str:
    """Pluralize a singular schema name ("card" -> "cards")."""
    if name.endswith("y") and len(name) > 1 and name[-2] not in "aeiou":
        return name[:-1] + "ies"
    if name.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


@dataclass(frozen=True, slots=True)
class ViewSpec:
    """
    A declarative view definition.

    Attributes:
        key: Dotted field path emitted as each row's key
        where: Dotted field path -> constant; a document is selected only if
            every listed field equals its constant
        value: Dotted field path emitted as each row's value, or None to
            emit the whole document
        reduce: Optional reducer, "_count" or "_sum"
    """

    key: str = "_id"
    where: Mapping[str, Any] = field(default_factory=dict)
    value: str | None = None
    reduce: str | None = None

    def __post_init__(self) -> None:
        if self.reduce is not None and self.reduce not in VALID_REDUCERS:
            raise ValueError(f"Invalid reducer: {self.reduce}. Must be one of {VALID_REDUCERS}")

    def to_definition(self, schema_name: str) -> dict[str, Any]:
        """Render this view for a design document, scoped to one schema."""
        where = dict(self.where)
        where[TYPE_FIELD] = schema_name
        definition: dict[str, Any] = {
            "map": {"where": where, "key": self.key, "value": self.value},
        }
        if self.reduce is not None:
            definition["reduce"] = self.reduce
        return definition


ALL_VIEW = ViewSpec()


@dataclass(frozen=True)
class ModelSchema:
    """
    A document type and its views.

    The built-in "all" view (every document of this type, keyed by id) is
    always present.
    """

    name: str
    views: Mapping[str, ViewSpec] = field(default_factory=dict)
    plural_name: str = ""

    def __post_init__(self) -> None:
        if not self.plural_name:
            object.__setattr__(self, "plural_name", pluralize(self.name))

        merged: dict[str, ViewSpec] = {"all": ALL_VIEW}
        for view_name, spec in self.views.items():
            if view_name == "all":
                logger.warning("Schema '%s' overrides the built-in 'all' view", self.name)
            merged[view_name] = spec
        object.__setattr__(self, "views", merged)

    @property
    def design_id(self) -> str:
        """Store key of this schema's design document."""
        return DESIGN_PREFIX + self.plural_name

    def view_path(self, view_name: str) -> str:
        """Namespaced view path, e.g. "cards/all"."""
        return f"{self.plural_name}/{view_name}"

    def design_document(self) -> dict[str, Any]:
        """Bundle every view of this schema into one design document body."""
        return {
            "_id": self.design_id,
            "language": DESIGN_LANGUAGE,
            "views": {
                view_name: spec.to_definition(self.name) for view_name, spec in self.views.items()
            },
        }


class SchemaRegistry:
    """Append-only, process-wide list of schemas, in registration order."""

    def __init__(self, schemas: list[ModelSchema] | None = None) -> None:
        self._schemas: dict[str, ModelSchema] = {}
        self._frozen = False
        for schema in schemas or []:
            self.register(schema)

    def register(self, schema: ModelSchema) -> ModelSchema:
        """
        Add a schema.

        Raises:
            RegistryFrozenError: If the registry has been frozen
            ValueError: If a schema with the same name is already registered
        """
        if self._frozen:
            raise RegistryFrozenError(schema.name)
        if schema.name in self._schemas:
            raise ValueError(f"Schema already registered: {schema.name}")
        self._schemas[schema.name] = schema
        logger.debug("Registered schema '%s'", schema.name)
        return schema

    def freeze(self) -> None:
        """Disallow further registration."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> ModelSchema:
        return self._schemas[name]

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __iter__(self) -> Iterator[ModelSchema]:
        return iter(list(self._schemas.values()))

    def __len__(self) -> int:
        return len(self._schemas)
