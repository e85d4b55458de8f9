"""Tests for oauth2cli.state -- correlation state generation."""

from __future__ import annotations

import random
import re
from unittest.mock import MagicMock

from oauth2cli.state import new_oauth2_state


class TestNewOAuth2State:
    def test_lowercase_hex_of_64_bits(self) -> None:
        state = new_oauth2_state()
        assert re.fullmatch(r"[0-9a-f]{1,16}", state)

    def test_unique_per_call(self) -> None:
        states = {new_oauth2_state() for _ in range(1000)}
        assert len(states) == 1000

    def test_uses_given_random_source(self) -> None:
        rng = MagicMock(spec=random.SystemRandom)
        rng.getrandbits.return_value = 0xDEADBEEF

        assert new_oauth2_state(rng) == "deadbeef"
        rng.getrandbits.assert_called_once_with(64)

    def test_no_zero_padding(self) -> None:
        rng = MagicMock(spec=random.SystemRandom)
        rng.getrandbits.return_value = 0xF
        assert new_oauth2_state(rng) == "f"
