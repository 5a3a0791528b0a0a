"""Certificate number generation and format checks.

Format: PREFIX-YYMM-XXXXXX

  PREFIX  fixed per deployment (CERTIFICATE_PREFIX, e.g. MEDEVENT)
  YYMM    issuance year and month, UTC
  XXXXXX  random suffix over 0-9A-Z

36**6 is about 2.2 billion suffixes per prefix and month.  Generation is
collision-avoidant, not collision-proof: the ledger's unique index is the
real guard and issuance retries on a duplicate.
"""

from __future__ import annotations

import random
import re
import secrets
import string
from collections.abc import Callable
from datetime import UTC, datetime

ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 6


def utc_now() -> datetime:
    return datetime.now(UTC)


class CertificateNumberGenerator:
    """Stateless number factory.

    Randomness and time are injected so tests can pass random.Random(seed)
    and a fixed clock.
    """

    def __init__(
        self,
        prefix: str,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
        suffix_length: int = SUFFIX_LENGTH,
    ) -> None:
        self.prefix = prefix
        self._rng = rng if rng is not None else secrets.SystemRandom()
        self._clock = clock
        self._suffix_length = suffix_length
        self._pattern = re.compile(
            rf"{re.escape(prefix)}-[0-9]{{2}}(0[1-9]|1[0-2])"
            rf"-[0-9A-Z]{{{suffix_length}}}"
        )

    def generate(self) -> str:
        now = self._clock()
        suffix = "".join(self._rng.choice(ALPHABET) for _ in range(self._suffix_length))
        return f"{self.prefix}-{now:%y%m}-{suffix}"

    def is_well_formed(self, value: str) -> bool:
        """Pure format check, used to reject lookups before touching storage."""
        if not isinstance(value, str):
            return False
        return self._pattern.fullmatch(value) is not None
