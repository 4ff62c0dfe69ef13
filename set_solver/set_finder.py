from itertools import combinations
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from set_solver.card import Card
from set_solver.diagnostics import DiagnosticLogger, NullDiagnosticLogger

logger = logging.getLogger(__name__)

ATTRIBUTE_NAMES = ("number", "shape", "color", "shading")

CardTriple = Tuple[Card, Card, Card]


def _attribute_ok(a: Any, b: Any, c: Any) -> bool:
    # all same (1 distinct value) or all different (3)
    return len({a, b, c}) != 2


class SetFinder:
    """
    Finds valid Sets among detected cards.

    For each of the four attributes the three values must be either all the
    same or all different. Three cards that agree on every attribute are
    rejected: a real deck holds each combination exactly once.
    """

    def __init__(self, diagnostics: Optional[DiagnosticLogger] = None):
        self.diagnostics = diagnostics or NullDiagnosticLogger()

    def is_valid_set(self, card1: Card, card2: Card, card3: Card) -> bool:
        """
        Check whether three cards form a valid Set.

        Args:
            card1, card2, card3 (Card): The candidate triple, in any order

        Returns:
            bool: True if every attribute is all-same or all-different
        """
        values = list(zip(card1.attributes, card2.attributes, card3.attributes))

        if all(len(set(v)) == 1 for v in values):
            self.diagnostics.log(
                f"Rejected [{card1.describe()}] x3: cards are identical, "
                f"a Set must differ in at least one dimension")
            return False

        for name, (a, b, c) in zip(ATTRIBUTE_NAMES, values):
            if not _attribute_ok(a, b, c):
                self.diagnostics.log(
                    f"Rejected [{card1.describe()}] [{card2.describe()}] [{card3.describe()}]: "
                    f"{name} has two of {self._odd_pair(a, b, c)}")
                return False

        self.diagnostics.log(
            f"Valid set: [{card1.describe()}] [{card2.describe()}] [{card3.describe()}]")
        return True

    @staticmethod
    def _odd_pair(a: Any, b: Any, c: Any) -> str:
        shared = a if a in (b, c) else b
        return shared.name.lower()

    def find_set_indices(self, cards: Sequence[Card]) -> List[Tuple[int, int, int]]:
        """
        Enumerate every valid Set by card position.

        Args:
            cards (list): Detected cards

        Returns:
            list: (i, j, k) index triples with i < j < k, in scan order
        """
        if len(cards) < 3:
            return []

        indices = [(i, j, k) for i, j, k in combinations(range(len(cards)), 3)
                   if self.is_valid_set(cards[i], cards[j], cards[k])]
        logger.info(f"Found {len(indices)} valid sets among {len(cards)} cards")
        return indices

    def find_all_sets(self, cards: Sequence[Card]) -> List[CardTriple]:
        """Every valid Set as (card_i, card_j, card_k) tuples with i < j < k."""
        return [(cards[i], cards[j], cards[k]) for i, j, k in self.find_set_indices(cards)]


def is_set(cards: Sequence[Card]) -> bool:
    """Module-level shortcut for SetFinder().is_valid_set on a 3-card sequence."""
    if len(cards) != 3:
        return False
    return SetFinder().is_valid_set(*cards)


def find_sets(cards: Sequence[Card],
              diagnostics: Optional[DiagnosticLogger] = None) -> List[Dict[str, Any]]:
    """
    Find all valid sets and describe them by card index.

    Args:
        cards (list): Detected cards
        diagnostics (DiagnosticLogger): Optional operator log for per-set explanations

    Returns:
        list: Dictionaries with 'set_indices' (sorted card indices) and 'cards'
    """
    return [{
        "set_indices": [i, j, k],
        "cards": [cards[i], cards[j], cards[k]],
    } for i, j, k in SetFinder(diagnostics).find_set_indices(cards)]
