"""Holder summary and share-of-supply distribution buckets."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from src.holders.holder_graph import percent_of_supply
from src.holders.ledger import Ledger
from src.holders.types import HolderNode

TINY_HOLDER_PCT = 0.001

# (label, min inclusive, max exclusive)
BUCKETS: list[tuple[str, float, float]] = [
    (">= 1%", 1.0, float("inf")),
    ("0.1% - 1%", 0.1, 1.0),
    ("0.01% - 0.1%", 0.01, 0.1),
    ("0.001% - 0.01%", 0.001, 0.01),
    ("< 0.001%", 0.0, 0.001),
]


@dataclass
class HolderSummary:
    minted_units: int
    burned_units: int
    supply_units: int
    total_holders: int
    top10_percent: float
    creator_address: str | None = None
    creator_percent: float | None = None

    def to_dict(self) -> dict:
        return {
            "mintedUnits": str(self.minted_units),
            "burnedUnits": str(self.burned_units),
            "supplyUnits": str(self.supply_units),
            "totalHolders": self.total_holders,
            "top10Percent": self.top10_percent,
            "creatorAddress": self.creator_address,
            "creatorPercent": self.creator_percent,
        }


@dataclass
class DistributionBucket:
    label: str
    min_pct: float
    max_pct: float
    count: int = 0
    pct_sum: float = 0.0

    def to_dict(self) -> dict:
        return {"label": self.label, "count": self.count, "pctSum": self.pct_sum}


def summarize(
    ledger: Ledger,
    creator: str | None = None,
    balances: Mapping[str, int] | None = None,
) -> HolderSummary:
    """Supply figures plus top-10 and creator concentration over ALL holders.

    Pass the graph's ``balances`` so LP reserves match the bubbles;
    defaults to the raw ledger balances.
    """
    supply = ledger.supply_units
    holders = ledger.holders if balances is None else balances
    top10 = sorted(holders.values(), reverse=True)[:10]

    creator = creator.lower() if creator else None
    creator_pct = None
    if creator:
        creator_pct = percent_of_supply(holders.get(creator, 0), supply)

    return HolderSummary(
        minted_units=ledger.minted_units,
        burned_units=ledger.burned_units,
        supply_units=supply,
        total_holders=len(holders),
        top10_percent=percent_of_supply(sum(top10), supply),
        creator_address=creator,
        creator_percent=creator_pct,
    )


def distribution_buckets(nodes: Sequence[HolderNode]) -> list[DistributionBucket]:
    buckets = [DistributionBucket(label, lo, hi) for label, lo, hi in BUCKETS]
    for n in nodes:
        p = n.percent_of_supply
        for b in buckets:
            if b.min_pct <= p < b.max_pct:
                b.count += 1
                b.pct_sum += p
                break
    return buckets


def tiny_holder_count(nodes: Sequence[HolderNode]) -> int:
    return sum(1 for n in nodes if n.percent_of_supply < TINY_HOLDER_PCT)
