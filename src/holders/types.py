"""Domain types shared by the holder analysis pipeline.

Everything here is scan-scoped: built from one transfer-event list,
consumed by the pipeline, then discarded.
"""

import re
from dataclasses import dataclass, field
from enum import StrEnum

from src.holders.exceptions import LedgerInconsistency

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
DEAD_ADDRESS = "0x000000000000000000000000000000000000dead"
SENTINELS: frozenset[str] = frozenset({ZERO_ADDRESS, DEAD_ADDRESS})

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def is_address(value: str) -> bool:
    return bool(_ADDRESS_RE.match(value or ""))


def normalize_address(value: str) -> str:
    """Lowercase and validate an address. Raises LedgerInconsistency if malformed."""
    addr = (value or "").strip().lower()
    if not _ADDRESS_RE.match(addr):
        raise LedgerInconsistency(f"malformed address {value!r}", address=value)
    return addr


class Tag(StrEnum):
    LP = "lp"
    CREATOR = "creator"
    PROXY = "proxy"
    VIA_PROXY = "via-proxy"
    CONNECTED = "connected"
    BURN = "burn"


@dataclass(frozen=True)
class TransferEvent:
    """A single token transfer as reported by the explorer."""

    from_address: str
    to_address: str
    amount_units: int
    timestamp_sec: int
    tx_hash: str = ""
    block_number: int = 0
    log_index: int = 0


@dataclass(frozen=True)
class FirstFunder:
    """Sender of the earliest qualifying inbound transfer to an address."""

    funder: str
    timestamp_sec: int
    amount_units: int


@dataclass(frozen=True)
class OutgoingTransfer:
    to_address: str
    timestamp_sec: int
    amount_units: int


@dataclass
class HolderNode:
    """A holder ready for the bubble layout and the render layer."""

    address: str
    balance_units: int
    percent_of_supply: float
    tags: set[Tag] = field(default_factory=set)
    proxy_group_id: str | None = None
    shared_funder_group_id: str | None = None
    initial_units: int | None = None  # first inbound amount
    radius: float = 0.0
    x: float = 0.0
    y: float = 0.0

    @property
    def still_held_pct(self) -> float | None:
        """Share of the first inbound amount still held, clamped to 0..100."""
        if not self.initial_units or self.initial_units <= 0:
            return None
        pct = self.balance_units / self.initial_units * 100
        return max(0.0, min(100.0, pct))

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "balanceUnits": str(self.balance_units),
            "percentOfSupply": self.percent_of_supply,
            "tags": sorted(str(t) for t in self.tags),
            "proxyGroupId": self.proxy_group_id,
            "sharedFunderGroupId": self.shared_funder_group_id,
            "stillHeldPct": self.still_held_pct,
            "radius": self.radius,
            "x": self.x,
            "y": self.y,
        }
