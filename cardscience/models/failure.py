"""
Failure classification for the crawl and the document store.

Every error the crawl can raise derives from `CardScienceError` and carries
a `FailureKind`, a short message, and optional technical detail. Structural
errors also carry enough context (selector, page number, item index) for the
caller to decide whether to abort the page, skip the item, or retry.

Response types:
- FetchError: The remote catalog could not be reached
- ElementNotFoundError: An expected page element is missing
- StoreError: The document store rejected an operation
- SchemaMismatchError: A stored document is not what its schema expects
- PageFailedError: An item failed and the page was aborted
"""

from enum import Enum


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Remote catalog failures
    FETCH_FAILED = "fetch_failed"
    ELEMENT_NOT_FOUND = "element_not_found"

    # Document store failures
    STORE_ERROR = "store_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Data integrity
    SCHEMA_MISMATCH = "schema_mismatch"
    REGISTRY_FROZEN = "registry_frozen"

    # Pipeline
    PAGE_FAILED = "page_failed"


class CardScienceError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        super().__init__(message)

    @property
    def reason(self) -> str:
        """Human-readable reason, including detail when present."""
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class FetchError(CardScienceError):
    """Raised when a result page cannot be fetched."""

    def __init__(
        self,
        page_number: int,
        url: str,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        self.page_number = page_number
        self.url = url
        self.status_code = status_code
        super().__init__(
            FailureKind.FETCH_FAILED,
            f"Could not fetch result page {page_number}",
            detail=detail,
        )


class ElementNotFoundError(CardScienceError):
    """
    Raised when an expected element is absent from a fetched page.

    Usually means the source changed its layout.
    """

    def __init__(
        self,
        selector: str,
        page_number: int | None = None,
        item_index: int | None = None,
    ):
        self.selector = selector
        self.page_number = page_number
        self.item_index = item_index

        where = []
        if page_number is not None:
            where.append(f"page {page_number}")
        if item_index is not None:
            where.append(f"item {item_index}")
        location = f" on {', '.join(where)}" if where else ""

        super().__init__(
            FailureKind.ELEMENT_NOT_FOUND,
            f"Element '{selector}' not found{location}",
        )


class StoreError(CardScienceError):
    """
    Raised when the document store fails an operation.

    `error` is the store's short error code (e.g. "conflict", "not_found"),
    `reason` its explanation.
    """

    kind_for_error = FailureKind.STORE_ERROR

    def __init__(self, error: str, message: str, detail: str | None = None):
        self.error = error
        super().__init__(self.kind_for_error, message, detail=detail)


class StoreNotFoundError(StoreError):
    """The requested document or view does not exist."""

    kind_for_error = FailureKind.NOT_FOUND

    def __init__(self, message: str, detail: str | None = None):
        super().__init__("not_found", message, detail=detail)


class StoreConflictError(StoreError):
    """A save carried a stale or missing revision token."""

    kind_for_error = FailureKind.CONFLICT

    def __init__(self, message: str, detail: str | None = None):
        super().__init__("conflict", message, detail=detail)


class SchemaMismatchError(CardScienceError):
    """A fetched document has the wrong type tag or no id at all."""

    def __init__(self, message: str, doc_id: str | None = None):
        self.doc_id = doc_id
        super().__init__(FailureKind.SCHEMA_MISMATCH, message)


class RegistryFrozenError(CardScienceError):
    """A schema was registered after the registry was frozen."""

    def __init__(self, name: str):
        super().__init__(
            FailureKind.REGISTRY_FROZEN,
            f"Cannot register schema '{name}': registry is frozen",
        )


class PageFailedError(CardScienceError):
    """An item on a page failed and the rest of the page was abandoned."""

    def __init__(self, page_number: int, item_index: int, detail: str | None = None):
        self.page_number = page_number
        self.item_index = item_index
        super().__init__(
            FailureKind.PAGE_FAILED,
            f"Problem dealing with item {item_index} on page {page_number}",
            detail=detail,
        )
