"""
Mana cost parser.

Gatherer renders a card's mana cost as a row of symbol images whose alt text
is either a colour name ("Red", "Blue", ...), a single-letter colour symbol
("R", "U", ...), or a number of generic (colourless) mana. Hybrid symbols
("Red or White") and split-card costs are not decoded and come through as
their literal lowercased label.
"""

import re
from collections.abc import Iterable

COLOURLESS = "colourless"

# Non-negative integer literal, e.g. "2" or "10"
_GENERIC_PATTERN = re.compile(r"^\s*(\d+)\s*$")

# Single-letter symbol abbreviations
SYMBOL_NAMES = {
    "w": "white",
    "u": "blue",
    "b": "black",
    "r": "red",
    "g": "green",
}


def parse_mana_cost(labels: Iterable[str]) -> dict[str, int]:
    """
    Count mana symbols by colour.

    Args:
        labels: Alt text of each mana symbol on a card, in any order

    Returns:
        Dict mapping lowercase colour name (or "colourless") to pip count

    Example:
        >>> parse_mana_cost(["2", "Red", "Red"])
        {'colourless': 2, 'red': 2}
    """
    costs: dict[str, int] = {}

    for label in labels:
        match = _GENERIC_PATTERN.match(label)
        if match:
            # One symbol can stand for several generic mana
            costs[COLOURLESS] = costs.get(COLOURLESS, 0) + int(match.group(1))
        else:
            colour = label.lower()
            colour = SYMBOL_NAMES.get(colour, colour)
            costs[colour] = costs.get(colour, 0) + 1

    return costs
