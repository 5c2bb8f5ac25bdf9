from cardscience.models.card import CARD_SCHEMA
from cardscience.models.schema import SchemaRegistry


def build_registry() -> SchemaRegistry:
    """Build the registry of every schema this application stores."""
    return SchemaRegistry([CARD_SCHEMA])
