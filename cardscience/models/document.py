from dataclasses import dataclass, field
from typing import Any

ID_FIELD = "_id"
REV_FIELD = "_rev"


@dataclass
class Document:
    """
    A stored document: identity plus a plain JSON-style field mapping.

    Attributes:
        id: Store key. None until the store assigns one.
        rev: Revision token from the last read or write. None for a fresh
            document, so the first save is a create.
        fields: Every other field, including the `type` schema tag.
    """

    id: str | None = None
    rev: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "Document":
        """Build a document from a raw store body with `_id`/`_rev` keys."""
        fields = {k: v for k, v in body.items() if k not in (ID_FIELD, REV_FIELD)}
        return cls(id=body.get(ID_FIELD), rev=body.get(REV_FIELD), fields=fields)

    def to_body(self) -> dict[str, Any]:
        """Flatten back into a raw store body."""
        body = dict(self.fields)
        if self.id is not None:
            body[ID_FIELD] = self.id
        if self.rev is not None:
            body[REV_FIELD] = self.rev
        return body

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)
