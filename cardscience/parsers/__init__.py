from cardscience.parsers.mana_cost import COLOURLESS, parse_mana_cost

__all__ = [
    "COLOURLESS",
    "parse_mana_cost",
]
