"""Balance ledger reconstruction from an ordered transfer-event log.

One linear pass produces balances, mint/burn totals, the first funder
of every recipient, and the per-sender flow indexes the proxy
classifier needs.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from src.holders.exceptions import LedgerInconsistency
from src.holders.types import (
    SENTINELS,
    ZERO_ADDRESS,
    FirstFunder,
    OutgoingTransfer,
    TransferEvent,
    normalize_address,
)

FIRST_BUYERS_LIMIT = 100


@dataclass
class Ledger:
    """Result of a ledger pass. Treated as read-only once built."""

    contract: str
    balances: dict[str, int] = field(default_factory=dict)
    minted_units: int = 0
    burned_units: int = 0
    first_funder_by_address: dict[str, FirstFunder] = field(default_factory=dict)
    outgoing_by_sender: dict[str, list[OutgoingTransfer]] = field(default_factory=dict)
    inbound_total_by_address: dict[str, int] = field(default_factory=dict)
    outbound_total_by_address: dict[str, int] = field(default_factory=dict)
    first_buyers: list[str] = field(default_factory=list)
    event_count: int = 0

    @property
    def supply_units(self) -> int:
        return max(0, self.minted_units - self.burned_units)

    @property
    def holders(self) -> dict[str, int]:
        """Addresses with a positive balance."""
        return {a: b for a, b in self.balances.items() if b > 0}

    def first_mint_recipient(self) -> str | None:
        """Earliest address funded straight from the zero address."""
        candidates = [
            (ff.timestamp_sec, addr)
            for addr, ff in self.first_funder_by_address.items()
            if ff.funder == ZERO_ADDRESS
        ]
        if not candidates:
            return None
        # dict order is event order, so min() on timestamp keeps the first tie
        return min(candidates, key=lambda c: c[0])[1]


def build_ledger(
    events: Sequence[TransferEvent],
    contract: str,
    *,
    skip_funders: Iterable[str] = (),
    first_buyers_limit: int = FIRST_BUYERS_LIMIT,
) -> Ledger:
    """Replay transfer events into a ledger.

    Events must already be in block/time order. Transfers touching the
    contract itself have no balance effect. Senders in ``skip_funders``
    (liquidity pairs) are never recorded as anyone's first funder.

    Raises LedgerInconsistency on a malformed address or when any final
    balance is negative.
    """
    contract = normalize_address(contract)
    skipped = {normalize_address(a) for a in skip_funders}

    balances: dict[str, int] = defaultdict(int)
    inbound: dict[str, int] = defaultdict(int)
    outbound: dict[str, int] = defaultdict(int)
    outgoing: dict[str, list[OutgoingTransfer]] = defaultdict(list)
    first_funders: dict[str, FirstFunder] = {}
    first_buyers: list[str] = []
    seen_buyers: set[str] = set()
    minted = 0
    burned = 0

    for idx, ev in enumerate(events):
        try:
            src = normalize_address(ev.from_address)
            dst = normalize_address(ev.to_address)
        except LedgerInconsistency as e:
            raise LedgerInconsistency(
                f"event #{idx} ({ev.tx_hash or 'no hash'}): {e}",
                address=e.address,
                event_index=idx,
            ) from e
        amount = ev.amount_units
        if amount < 0:
            raise LedgerInconsistency(
                f"event #{idx} has negative amount {amount}", event_index=idx
            )

        if src == ZERO_ADDRESS:
            minted += amount
        if dst in SENTINELS:
            burned += amount

        if src == contract or dst == contract:
            continue

        if src not in SENTINELS:
            balances[src] -= amount
        if dst not in SENTINELS:
            balances[dst] += amount

        outgoing[src].append(OutgoingTransfer(dst, ev.timestamp_sec, amount))
        outbound[src] += amount
        inbound[dst] += amount

        if dst not in SENTINELS and dst not in first_funders and src not in skipped:
            first_funders[dst] = FirstFunder(
                funder=src, timestamp_sec=ev.timestamp_sec, amount_units=amount
            )

        if (
            src not in SENTINELS
            and dst not in SENTINELS
            and dst not in seen_buyers
            and len(first_buyers) < first_buyers_limit
        ):
            seen_buyers.add(dst)
            first_buyers.append(dst)

    for addr, bal in balances.items():
        if bal < 0:
            raise LedgerInconsistency(
                f"negative balance {bal} for {addr}", address=addr, balance_units=bal
            )

    ledger = Ledger(
        contract=contract,
        balances=dict(balances),
        minted_units=minted,
        burned_units=burned,
        first_funder_by_address=first_funders,
        outgoing_by_sender=dict(outgoing),
        inbound_total_by_address=dict(inbound),
        outbound_total_by_address=dict(outbound),
        first_buyers=first_buyers,
        event_count=len(events),
    )

    logger.debug(
        f"[LEDGER] {contract[:12]}: {len(events)} events, "
        f"{len(ledger.holders)} holders, minted={minted}, burned={burned}"
    )
    if burned > minted:
        logger.warning(
            f"[LEDGER] {contract[:12]}: burned {burned} exceeds minted {minted}, "
            f"supply floored at zero"
        )
    return ledger


def to_display_amount(units: int, decimals: int) -> float:
    """Convert base units to a display amount."""
    return units / (10 ** decimals) if decimals > 0 else float(units)


def sorted_events(events: Iterable[TransferEvent]) -> list[TransferEvent]:
    """Order by block, timestamp, then log index; stable for source order ties."""
    return sorted(events, key=lambda e: (e.block_number, e.timestamp_sec, e.log_index))
