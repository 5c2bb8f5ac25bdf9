"""
Document store collaborator.

`DocumentStore` is the logical contract the document model layer relies on:
existence check, creation, and get/save/remove/view over JSON documents with
revision tokens. `SqlDocumentStore` implements it on an async SQLAlchemy
engine, one row per document.

Views are evaluated from the declarative definitions held in design
documents (see `ModelSchema.design_document`), so a view only answers after
its design document has been installed.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from itertools import groupby
from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from cardscience.models.db import Base, DocumentDB
from cardscience.models.document import ID_FIELD, REV_FIELD
from cardscience.models.failure import StoreConflictError, StoreError, StoreNotFoundError
from cardscience.models.schema import DESIGN_PREFIX, TYPE_FIELD

logger = logging.getLogger(__name__)

_MISSING = object()


class DocumentStore(ABC):
    """Minimum operation set of a revisioned JSON document store."""

    @abstractmethod
    async def exists(self) -> bool:
        """Whether the database has been created."""

    @abstractmethod
    async def create(self) -> None:
        """Create the database. Safe to call when it already exists."""

    @abstractmethod
    async def get(self, doc_id: str) -> dict[str, Any]:
        """
        Fetch a document body, including `_id` and `_rev`.

        Raises:
            StoreNotFoundError: If no document has this id
            StoreError: On any other failure
        """

    @abstractmethod
    async def save(
        self, doc_id: str | None, rev: str | None, body: dict[str, Any]
    ) -> tuple[str, str]:
        """
        Write a document. Returns its (id, new revision).

        A missing id lets the store assign one. An existing document can
        only be overwritten by passing its current revision.

        Raises:
            StoreConflictError: On a revision mismatch
            StoreError: On any other failure
        """

    @abstractmethod
    async def remove(self, doc_id: str) -> None:
        """
        Delete a document.

        Raises:
            StoreNotFoundError: If no document has this id
            StoreError: On any other failure
        """

    @abstractmethod
    async def view(self, path: str, options: dict[str, Any]) -> list[dict[str, Any]]:
        """
        Query a view by its namespaced path ("cards/all").

        Returns rows as {"id", "key", "value"} dicts ordered by key.
        Reduced rows carry only "key" and "value".
        """


def next_revision(current: str | None) -> str:
    """Revision tokens are "<generation>-<random hex>"."""
    generation = 0
    if current:
        generation = int(current.split("-", 1)[0])
    return f"{generation + 1}-{uuid.uuid4().hex}"


def resolve_path(body: dict[str, Any], path: str) -> Any:
    """Look up a dotted field path. Returns _MISSING when absent."""
    value: Any = body
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def collation_key(value: Any) -> tuple[Any, ...]:
    """
    Sort key giving a total order over JSON values.

    null < booleans < numbers < strings < arrays < objects
    """
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, int | float):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    if isinstance(value, list | tuple):
        return (4, tuple(collation_key(item) for item in value))
    return (5, json.dumps(value, sort_keys=True, default=str))


def evaluate_view(
    definition: dict[str, Any],
    bodies: Sequence[dict[str, Any]],
    options: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Run a declarative view definition over document bodies.

    Supported options: key, keys, startkey, endkey, inclusive_end,
    descending, skip, limit, reduce, group.
    """
    spec = definition["map"]
    where: dict[str, Any] = spec.get("where", {})
    key_path: str = spec.get("key", ID_FIELD)
    value_path: str | None = spec.get("value")

    rows: list[dict[str, Any]] = []
    for body in bodies:
        if any(resolve_path(body, field) != expected for field, expected in where.items()):
            continue
        key = resolve_path(body, key_path)
        if key is _MISSING:
            continue
        value = body if value_path is None else resolve_path(body, value_path)
        if value is _MISSING:
            value = None
        rows.append({"id": body[ID_FIELD], "key": key, "value": value})

    rows.sort(key=lambda row: (collation_key(row["key"]), row["id"]))
    rows = _select_keys(rows, options)

    reducer = definition.get("reduce")
    if reducer and options.get("reduce", True):
        rows = _reduce(rows, reducer, group=bool(options.get("group", False)))

    skip = int(options.get("skip", 0))
    limit = options.get("limit")
    rows = rows[skip:]
    if limit is not None:
        rows = rows[: int(limit)]
    return rows


def _select_keys(rows: list[dict[str, Any]], options: dict[str, Any]) -> list[dict[str, Any]]:
    """Apply key/keys/startkey/endkey/descending."""
    if "keys" in options:
        selected: list[dict[str, Any]] = []
        for wanted in options["keys"]:
            wanted_key = collation_key(wanted)
            selected.extend(row for row in rows if collation_key(row["key"]) == wanted_key)
        return selected

    if "key" in options:
        wanted_key = collation_key(options["key"])
        rows = [row for row in rows if collation_key(row["key"]) == wanted_key]

    descending = bool(options.get("descending", False))
    if descending:
        rows = list(reversed(rows))

    if "startkey" in options:
        start = collation_key(options["startkey"])
        if descending:
            rows = [row for row in rows if collation_key(row["key"]) <= start]
        else:
            rows = [row for row in rows if collation_key(row["key"]) >= start]

    if "endkey" in options:
        end = collation_key(options["endkey"])
        inclusive = options.get("inclusive_end", True)

        def before_end(row: dict[str, Any]) -> bool:
            current = collation_key(row["key"])
            if descending:
                return current >= end if inclusive else current > end
            return current <= end if inclusive else current < end

        rows = [row for row in rows if before_end(row)]

    return rows


def _reduce(rows: list[dict[str, Any]], reducer: str, group: bool) -> list[dict[str, Any]]:
    def combine(values: list[Any]) -> Any:
        if reducer == "_count":
            return len(values)
        return sum(v for v in values if isinstance(v, int | float) and not isinstance(v, bool))

    if not group:
        if not rows:
            return []
        return [{"key": None, "value": combine([row["value"] for row in rows])}]

    reduced = []
    for _, grouped in groupby(rows, key=lambda row: collation_key(row["key"])):
        members = list(grouped)
        reduced.append(
            {"key": members[0]["key"], "value": combine([row["value"] for row in members])}
        )
    return reduced


class SqlDocumentStore(DocumentStore):
    """Document store on an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def exists(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                return await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(DocumentDB.__tablename__)
                )
        except SQLAlchemyError as e:
            raise StoreError("db_error", "Problem connecting to the document store", str(e)) from e

    async def create(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError("db_error", "Problem creating the document store", str(e)) from e

    async def get(self, doc_id: str) -> dict[str, Any]:
        try:
            async with self._session_factory() as session:
                row = await session.get(DocumentDB, doc_id)
        except SQLAlchemyError as e:
            raise StoreError("db_error", f"Problem fetching document '{doc_id}'", str(e)) from e

        if row is None:
            raise StoreNotFoundError(f"Document '{doc_id}' not found", detail="missing")
        return {**row.body, ID_FIELD: row.id, REV_FIELD: row.rev}

    async def save(
        self, doc_id: str | None, rev: str | None, body: dict[str, Any]
    ) -> tuple[str, str]:
        doc_id = doc_id or uuid.uuid4().hex
        stored = {k: v for k, v in body.items() if k not in (ID_FIELD, REV_FIELD)}

        async with self._session_factory() as session:
            try:
                row = await session.get(DocumentDB, doc_id)
                if row is None:
                    if rev is not None:
                        raise StoreConflictError(
                            f"Document '{doc_id}' does not exist",
                            detail=f"revision {rev} given",
                        )
                    new_rev = next_revision(None)
                    session.add(DocumentDB(id=doc_id, rev=new_rev, body=stored))
                else:
                    if rev != row.rev:
                        raise StoreConflictError(
                            f"Document update conflict for '{doc_id}'",
                            detail=f"expected revision {row.rev}, got {rev}",
                        )
                    new_rev = next_revision(row.rev)
                    row.rev = new_rev
                    row.body = stored
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise StoreConflictError(
                    f"Document update conflict for '{doc_id}'", detail=str(e)
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError("db_error", f"Problem saving document '{doc_id}'", str(e)) from e

        return doc_id, new_rev

    async def remove(self, doc_id: str) -> None:
        async with self._session_factory() as session:
            try:
                row = await session.get(DocumentDB, doc_id)
                if row is None:
                    raise StoreNotFoundError(f"Document '{doc_id}' not found", detail="deleted")
                await session.delete(row)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError("db_error", f"Problem removing document '{doc_id}'", str(e)) from e

    async def view(self, path: str, options: dict[str, Any]) -> list[dict[str, Any]]:
        design_name, _, view_name = path.partition("/")
        design_id = DESIGN_PREFIX + design_name

        try:
            design = await self.get(design_id)
        except StoreNotFoundError as e:
            raise StoreNotFoundError(f"Missing design document '{design_id}'", detail=path) from e

        definition = design.get("views", {}).get(view_name)
        if definition is None:
            raise StoreNotFoundError(f"Missing view '{view_name}' in '{design_id}'", detail=path)

        is_design = DocumentDB.id.startswith(DESIGN_PREFIX, autoescape=True)
        query = select(DocumentDB).where(~is_design)

        # Narrow by schema type in SQL; the rest of the where clause runs in Python
        type_name = definition["map"].get("where", {}).get(TYPE_FIELD)
        if isinstance(type_name, str):
            query = query.where(DocumentDB.body[TYPE_FIELD].as_string() == type_name)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                bodies = [
                    {**row.body, ID_FIELD: row.id, REV_FIELD: row.rev}
                    for row in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            raise StoreError("db_error", f"Problem evaluating view '{path}'", str(e)) from e

        logger.debug("Evaluating view %s over %d documents", path, len(bodies))
        return evaluate_view(definition, bodies, options)
