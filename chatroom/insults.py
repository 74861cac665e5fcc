import random
from typing import Iterable, Optional, Tuple

DEFAULT_INSULTS: Tuple[str, ...] = (
    "You ignorant buffoon.",
    "You half-witted dunce.",
    "You obtuse knave.",
    "You pompous fool.",
    "You daft imbecile.",
)


class InsultPool:
    """Fixed list of phrases; `pick()` returns one uniformly at random."""

    def __init__(self, phrases: Optional[Iterable[str]] = None, rng: Optional[random.Random] = None) -> None:
        self._phrases = tuple(DEFAULT_INSULTS if phrases is None else phrases)
        if not self._phrases:
            raise ValueError("InsultPool needs at least one phrase")
        self._rng = rng or random.Random()

    @property
    def phrases(self) -> Tuple[str, ...]:
        return self._phrases

    def pick(self) -> str:
        return self._rng.choice(self._phrases)

    def __len__(self) -> int:
        return len(self._phrases)
