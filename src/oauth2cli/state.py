"""Correlation state generation for the authorization request."""

from __future__ import annotations

import random
from typing import Optional


def new_oauth2_state(rng: Optional[random.SystemRandom] = None) -> str:
    """Return a fresh anti-forgery ``state`` value.

    The value is 64 random bits from the OS CSPRNG rendered as lowercase
    hex without padding.

    Args:
        rng: Random source owned by the calling flow. A new
            :class:`random.SystemRandom` is used when omitted.
    """
    if rng is None:
        rng = random.SystemRandom()
    return format(rng.getrandbits(64), "x")
