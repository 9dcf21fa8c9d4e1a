"""Enums for rule comparators."""
from enum import Enum


class Comparator(str, Enum):
    GREATER_THAN = "GT"
    GREATER_OR_EQUAL = "GTE"
    LESS_THAN = "LT"
    LESS_OR_EQUAL = "LTE"
    EQUAL = "EQ"

    @property
    def symbol(self):
        return _SYMBOLS[self]

    def compare(self, value: float, threshold: float) -> bool:
        """Apply this comparator to (value, threshold). EQ is exact float equality."""
        match self:
            case Comparator.GREATER_THAN:
                return value > threshold
            case Comparator.GREATER_OR_EQUAL:
                return value >= threshold
            case Comparator.LESS_THAN:
                return value < threshold
            case Comparator.LESS_OR_EQUAL:
                return value <= threshold
            case Comparator.EQUAL:
                return value == threshold

    @classmethod
    def parse(cls, tag):
        """Resolve a wire tag ("GT") or symbol (">") to a Comparator.

        Raises ValueError for anything outside the fixed set.
        """
        if isinstance(tag, cls):
            return tag
        if not isinstance(tag, str):
            raise ValueError(f"Unknown comparator: {tag!r}")
        key = tag.strip().upper()
        for member in cls:
            if key == member.value or key == member.symbol:
                return member
        raise ValueError(f"Unknown comparator: {tag!r}")


_SYMBOLS = {
    Comparator.GREATER_THAN: ">",
    Comparator.GREATER_OR_EQUAL: ">=",
    Comparator.LESS_THAN: "<",
    Comparator.LESS_OR_EQUAL: "<=",
    Comparator.EQUAL: "==",
}
