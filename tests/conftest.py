"""Shared test fixtures."""

from collections.abc import Callable

import pytest

from src.holders.scan_cache import InMemoryScanCache
from src.holders.types import TransferEvent


@pytest.fixture
def make_event() -> Callable[..., TransferEvent]:
    """Build TransferEvents with increasing block numbers unless given."""
    counter = {"block": 0}

    def _make(src: str, dst: str, amount: int, ts: int = 0, **kw) -> TransferEvent:
        counter["block"] += 1
        kw.setdefault("block_number", counter["block"])
        return TransferEvent(
            from_address=src, to_address=dst, amount_units=amount, timestamp_sec=ts, **kw
        )

    return _make


@pytest.fixture
def scan_cache() -> InMemoryScanCache:
    return InMemoryScanCache()
