"""Playing cards, the elements synchronized in the card game areas."""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

SUITS = ("clubs", "diamonds", "hearts", "spades")
RANK_NAMES = {1: "A", 11: "J", 12: "Q", 13: "K"}
_RANK_LOOKUP = {name: rank for rank, name in RANK_NAMES.items()}
_SUIT_LOOKUP = {suit[0].upper(): suit for suit in SUITS}


@dataclass(frozen=True)
class Card:
    """An immutable playing card.

    Attributes:
        suit: One of SUITS
        rank: 1 (ace) to 13 (king)
    """
    suit: str
    rank: int

    def __post_init__(self):
        if self.suit not in SUITS:
            raise ValueError(f"Unknown suit: {self.suit!r}")
        if isinstance(self.rank, bool) or not isinstance(self.rank, int):
            raise TypeError(f"Rank must be an int, got {type(self.rank).__name__}")
        if not 1 <= self.rank <= 13:
            raise ValueError(f"Rank out of range: {self.rank}")

    def to_record(self) -> Dict[str, Any]:
        return {"suit": self.suit, "rank": self.rank}

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Card":
        """Decode a card record.

        Raises:
            KeyError: If "suit" or "rank" is missing
            TypeError, ValueError: If a field has the wrong type or value
        """
        return cls(suit=record["suit"], rank=record["rank"])

    @classmethod
    def parse(cls, text: str) -> "Card":
        """Parse short notation such as "7H", "QS" or "10d"."""
        text = text.strip().upper()
        if len(text) < 2:
            raise ValueError(f"Not a card: {text!r}")

        rank_text, suit_text = text[:-1], text[-1]
        if suit_text not in _SUIT_LOOKUP:
            raise ValueError(f"Unknown suit in {text!r}")

        if rank_text in _RANK_LOOKUP:
            rank = _RANK_LOOKUP[rank_text]
        elif rank_text.isdigit():
            rank = int(rank_text)
        else:
            raise ValueError(f"Unknown rank in {text!r}")

        return cls(suit=_SUIT_LOOKUP[suit_text], rank=rank)

    def __str__(self) -> str:
        return f"{RANK_NAMES.get(self.rank, str(self.rank))}{self.suit[0].upper()}"


def standard_deck() -> List[Card]:
    """Return the 52 cards in suit-then-rank order."""
    return [Card(suit, rank) for suit in SUITS for rank in range(1, 14)]


def shuffled_deck(seed: Optional[int] = None) -> List[Card]:
    """Return a shuffled 52-card deck (deterministic when seeded)."""
    deck = standard_deck()
    random.Random(seed).shuffle(deck)
    return deck
