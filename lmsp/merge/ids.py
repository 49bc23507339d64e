"""
Identifier generation for merged blocks and symbols.
"""

import logging
import random
from typing import Iterable, Optional, Set

from ..errors import IdSpaceExhaustedError


class IdGenerator:
    """
    Mints random fixed-length ids that are unique within one merge.

    Every candidate is checked against the ids already present in the target
    document and against every id this generator handed out before.
    """

    def __init__(self, existing_ids: Iterable[str], length: int, alphabet: str,
                 max_attempts: int = 1000, rng: Optional[random.Random] = None):
        if length <= 0 or not alphabet:
            raise ValueError("Id length and alphabet must not be empty")

        self.length = length
        self.alphabet = alphabet
        self.max_attempts = max_attempts
        self._rng = rng or random.SystemRandom()
        self._taken: Set[str] = set(existing_ids)

    def _candidate(self) -> str:
        return ''.join(self._rng.choice(self.alphabet) for _ in range(self.length))

    def __call__(self) -> str:
        """
        Generate a new unique id.

        Raises:
            IdSpaceExhaustedError: if no free id was found within max_attempts
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._candidate()
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate
            logging.debug(f"Generated id collided on attempt {attempt}, retrying")

        raise IdSpaceExhaustedError(
            f"No free id found after {self.max_attempts} attempts "
            f"(length {self.length}, {len(self.alphabet)} symbols, {len(self._taken)} ids taken)"
        )
