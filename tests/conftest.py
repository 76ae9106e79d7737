"""
CK Buylist: Shared pytest Fixtures
"""

from __future__ import annotations

from typing import Any

import pytest

from ckbuylist.config import Settings


@pytest.fixture
def make_settings():
    """Settings factory that ignores any local .env file."""

    def _make(**overrides: Any) -> Settings:
        base: dict[str, Any] = {"PAGE_DELAY_MS": 0}
        base.update(overrides)
        return Settings(_env_file=None, **base)

    return _make


@pytest.fixture
def test_settings(make_settings) -> Settings:
    return make_settings()
