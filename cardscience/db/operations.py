"""
Document model operations.

Schema-parameterized save/find/destroy/view over a `DocumentStore`, plus
in-memory field helpers and design document installation. Documents are
plain `Document` values; every operation takes the document (and schema)
explicitly.
"""

import logging
from typing import Any

from cardscience.db.store import DocumentStore
from cardscience.models.document import ID_FIELD, REV_FIELD, Document
from cardscience.models.failure import SchemaMismatchError, StoreError, StoreNotFoundError
from cardscience.models.schema import TYPE_FIELD, ModelSchema, SchemaRegistry

logger = logging.getLogger(__name__)

# --- Store Operations ---


async def save(store: DocumentStore, schema: ModelSchema, doc: Document) -> tuple[str, str]:
    """
    Save a document under a schema.

    If the document has no id the store assigns one. If it carries a
    revision, the store uses it to detect conflicting writes. On success the
    document's id and revision are updated in place.

    Raises:
        StoreError: If the store rejects the write
    """
    doc.fields[TYPE_FIELD] = schema.name
    logger.debug("Saving: %s, rev: %s", doc.id, doc.rev)

    try:
        doc_id, rev = await store.save(doc.id, doc.rev, doc.to_body())
    except StoreError as e:
        # TODO retry conflicts by refetching the current revision
        logger.error("Problem saving document %s: %s", doc.id, e.reason)
        raise

    doc.id = doc_id
    doc.rev = rev
    return doc_id, rev


async def destroy(store: DocumentStore, doc: Document) -> None:
    """
    Remove a document from the store.

    Raises:
        StoreError: If the document has no id or the store fails
    """
    if doc.id is None:
        raise StoreError("bad_request", "Cannot destroy a document without an id")
    await store.remove(doc.id)


async def find(store: DocumentStore, schema: ModelSchema, doc_id: str) -> Document | None:
    """
    Fetch a document of this schema by id.

    Returns None if the store has no such document.

    Raises:
        StoreError: If the fetch fails for any other reason
        SchemaMismatchError: If the document came back without an id, or is
            tagged with a different schema
    """
    try:
        body = await store.get(doc_id)
    except StoreNotFoundError:
        return None
    except StoreError as e:
        logger.error("Problem fetching document ID '%s': %s", doc_id, e.reason)
        raise

    if body.get(ID_FIELD) is None:
        raise SchemaMismatchError(f"Document fetched with id '{doc_id}' has no _id field")
    if body.get(TYPE_FIELD) != schema.name:
        raise SchemaMismatchError(f"{body[ID_FIELD]} isn't a {schema.name}", doc_id=body[ID_FIELD])

    return Document.from_body(body)


async def view(
    store: DocumentStore,
    schema: ModelSchema,
    view_name: str,
    options: dict[str, Any] | str | int | float | bool | None = None,
) -> list[Document]:
    """
    Query one of the schema's views.

    Args:
        view_name: Name of a view registered on the schema
        options: View options ("key", "startkey", "limit", ...). A bare
            string, number or boolean is shorthand for {"key": options}.

    Returns:
        One Document per result row

    Raises:
        KeyError: If the schema has no such view
        TypeError: If options is not a dict or a bare key
        StoreError: If the query fails; a not_found error usually means the
            design documents have not been installed
    """
    if view_name not in schema.views:
        raise KeyError(f"Schema '{schema.name}' has no view '{view_name}'")

    if options is None:
        options = {}
    elif isinstance(options, str | int | float):
        options = {"key": options}
    elif not isinstance(options, dict):
        raise TypeError(
            f"View options must be a dict, string or number, not {type(options).__name__}"
        )

    path = schema.view_path(view_name)
    logger.debug("Querying %s", path)

    try:
        rows = await store.view(path, dict(options))
    except StoreNotFoundError:
        logger.error(
            "not_found error while evaluating view %s; "
            "perhaps you need to run `cardscience --install-db`?",
            path,
        )
        raise

    return [_row_to_document(row) for row in rows]


def _row_to_document(row: dict[str, Any]) -> Document:
    value = row.get("value")
    if isinstance(value, dict) and ID_FIELD in value:
        return Document.from_body(value)
    return Document(id=row.get("id"), fields={"key": row.get("key"), "value": value})


# --- Field Helpers ---


def clear(doc: Document) -> None:
    """Remove every field except id and revision."""
    doc.fields.clear()


def update(doc: Document, partial: dict[str, Any]) -> None:
    """
    Shallow-assign every field of `partial` onto the document.

    Identity fields are never overwritten this way.
    """
    for name, value in partial.items():
        if name in (ID_FIELD, REV_FIELD):
            logger.warning("Careful, updating %s with update()?! Ignored.", name)
            continue
        doc.fields[name] = value


def deep_update(doc: Document, partial: dict[str, Any]) -> None:
    """
    Merge `partial` into the document, recursing into nested objects.

    Nested dicts merge key by key into the matching (or a new empty) dict on
    the document. Lists, strings, numbers and booleans replace the target
    value outright.
    """

    def recurse(source: dict[str, Any], target: dict[str, Any]) -> None:
        for name, value in source.items():
            if isinstance(value, dict):
                if not isinstance(target.get(name), dict):
                    target[name] = {}
                recurse(value, target[name])
            else:
                target[name] = value

    recurse(partial, doc.fields)


# --- Design Documents ---


async def install_design_document(store: DocumentStore, schema: ModelSchema) -> str:
    """
    Build the schema's design document and write it over any existing one.

    Returns the new revision.

    Raises:
        StoreError: If the write fails
    """
    logger.info("Uploading '%s' design documents.", schema.name)
    design = schema.design_document()

    current_rev = None
    try:
        current = await store.get(schema.design_id)
        current_rev = current.get(REV_FIELD)
    except StoreNotFoundError:
        pass

    _, rev = await store.save(schema.design_id, current_rev, design)
    logger.info("... done! %s at revision %s", schema.design_id, rev)
    return rev


async def install_all_design_documents(store: DocumentStore, registry: SchemaRegistry) -> None:
    """
    Install the design document of every registered schema, in order.

    Stops at the first failure and re-raises it. Schemas installed before
    the failure stay installed.
    """
    registry.freeze()
    for schema in registry:
        await install_design_document(store, schema)


async def ensure_database(store: DocumentStore) -> bool:
    """
    Create the database if it does not exist yet.

    Returns True if it had to be created.
    """
    if await store.exists():
        logger.info("Database is ready.")
        return False

    logger.info("Database does not yet exist, creating it.")
    await store.create()
    return True
