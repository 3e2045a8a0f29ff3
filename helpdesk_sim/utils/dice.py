"""
Weighted outcome helper

Every probability draw in the simulation goes through Dice so tests can
substitute a deterministic source.
"""
import random
from typing import Optional, Sequence, TypeVar, List

T = TypeVar("T")


class Dice:
    """Thin wrapper around random.Random"""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def roll(self, probability: float) -> bool:
        """
        Draw a weighted outcome

        Args:
            probability: Chance in [0, 1] that the outcome happens

        Returns:
            True with the given probability
        """
        return self._rng.random() < probability

    def uniform(self, low: float, high: float) -> float:
        return self._rng.uniform(low, high)

    def choice(self, items: Sequence[T]) -> T:
        return self._rng.choice(items)

    def sample(self, items: Sequence[T], k: int) -> List[T]:
        return self._rng.sample(list(items), k)

    def randint(self, low: int, high: int) -> int:
        return self._rng.randint(low, high)
