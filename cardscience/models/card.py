from dataclasses import dataclass, field

from cardscience.models.document import Document
from cardscience.models.schema import ModelSchema, ViewSpec

CARD_ID_PREFIX = "mtg_card_"

CARD_SCHEMA = ModelSchema(
    name="card",
    views={
        "by_mid": ViewSpec(key="mid"),
        "by_title": ViewSpec(key="title"),
        "by_converted_cost": ViewSpec(key="converted_mana_cost", reduce="_count"),
    },
)


def card_id(external_id: str | int) -> str:
    """Derive the store key for a card from its multiverse id."""
    return f"{CARD_ID_PREFIX}{external_id}"


@dataclass(slots=True)
class RawCard:
    """
    A card as extracted from one search result row.

    Attributes:
        title: Card title text
        external_id: Gatherer multiverse id
        mana_cost: Colour name (or "colourless") -> pip count
        converted_cost: Converted mana cost as shown on the page
    """

    title: str
    external_id: str
    mana_cost: dict[str, int] = field(default_factory=dict)
    converted_cost: int | float | str = 0

    @property
    def document_id(self) -> str:
        return card_id(self.external_id)

    def cost_matches(self) -> bool:
        """
        Whether the pip total equals the converted cost.

        Advisory only; non-numeric converted costs always match.
        """
        if isinstance(self.converted_cost, str):
            return True
        return sum(self.mana_cost.values()) == self.converted_cost


def card_document(raw: RawCard) -> Document:
    """Build a fresh (unsaved, revision-less) card document."""
    return Document(
        id=raw.document_id,
        fields={
            "title": raw.title,
            "mid": raw.external_id,
            "mana_cost": dict(raw.mana_cost),
            "converted_mana_cost": raw.converted_cost,
        },
    )
