"""Funding clusters: group holders by who first funded them.

A sender that first-funded 2+ holders and is not a proxy is a shared
funder hub (organic cluster, tag ``connected``). A proxy that first-funded
any holder marks those holders ``via-proxy``. A holder carries at most
one of the two group ids because a sender is either a proxy or not.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from loguru import logger

from src.holders.types import FirstFunder, Tag

MIN_SHARED_RECIPIENTS = 2
MIN_PROXY_RECIPIENTS = 1

KIND_PROXY = "proxy"
KIND_SHARED = "shared"


@dataclass
class FundingClusters:
    """Group membership for one scan."""

    proxy_groups: dict[str, list[str]] = field(default_factory=dict)
    shared_groups: dict[str, list[str]] = field(default_factory=dict)
    proxy_group_of: dict[str, str] = field(default_factory=dict)
    shared_group_of: dict[str, str] = field(default_factory=dict)

    def tags_for(self, address: str) -> set[Tag]:
        tags: set[Tag] = set()
        if address in self.proxy_group_of:
            tags.add(Tag.VIA_PROXY)
        if address in self.shared_group_of:
            tags.add(Tag.CONNECTED)
        return tags

    @property
    def group_count(self) -> int:
        return len(self.proxy_groups) + len(self.shared_groups)


@dataclass
class GroupSummary:
    """Aggregate totals for one funding group."""

    group_id: str
    kind: str
    members: list[str]
    allocation_pct: float = 0.0
    received_units: int = 0
    sent_units: int = 0

    def to_dict(self) -> dict:
        return {
            "groupId": self.group_id,
            "kind": self.kind,
            "members": self.members,
            "allocationPct": self.allocation_pct,
            "receivedUnits": str(self.received_units),
            "sentUnits": str(self.sent_units),
        }


def invert_first_funders(
    first_funders: Mapping[str, FirstFunder],
    holders: Iterable[str],
) -> dict[str, list[str]]:
    """Map sender -> sorted holders whose first funder it was."""
    holder_set = set(holders)
    recipients: dict[str, list[str]] = defaultdict(list)
    for addr, ff in first_funders.items():
        if addr in holder_set:
            recipients[ff.funder].append(addr)
    return {sender: sorted(members) for sender, members in recipients.items()}


def group_by_funder(
    first_funders: Mapping[str, FirstFunder],
    proxies: set[str],
    holders: Iterable[str],
    *,
    ignore: Iterable[str] = (),
) -> FundingClusters:
    """Tag holders with their proxy group or shared-funder group.

    Senders in ``ignore`` (sentinels, the contract, liquidity pairs) never
    form a group. Event order plays no part in grouping.
    """
    ignored = {a.lower() for a in ignore}
    clusters = FundingClusters()

    for sender, members in sorted(invert_first_funders(first_funders, holders).items()):
        if sender in ignored:
            continue
        if sender in proxies:
            if len(members) < MIN_PROXY_RECIPIENTS:
                continue
            clusters.proxy_groups[sender] = members
            for m in members:
                clusters.proxy_group_of[m] = sender
        elif len(members) >= MIN_SHARED_RECIPIENTS:
            clusters.shared_groups[sender] = members
            for m in members:
                clusters.shared_group_of[m] = sender

    if clusters.group_count:
        logger.debug(
            f"[CLUSTER] {len(clusters.proxy_groups)} proxy groups "
            f"({len(clusters.proxy_group_of)} holders), "
            f"{len(clusters.shared_groups)} shared-funder groups "
            f"({len(clusters.shared_group_of)} holders)"
        )
    return clusters


def summarize_groups(
    clusters: FundingClusters,
    percent_by_address: Mapping[str, float],
    inbound_total: Mapping[str, int],
    outbound_total: Mapping[str, int],
) -> list[GroupSummary]:
    """Per-group allocation and flow totals, largest allocation first."""
    summaries: list[GroupSummary] = []
    for kind, groups in ((KIND_PROXY, clusters.proxy_groups), (KIND_SHARED, clusters.shared_groups)):
        for group_id, members in groups.items():
            summaries.append(GroupSummary(
                group_id=group_id,
                kind=kind,
                members=list(members),
                allocation_pct=sum(percent_by_address.get(m, 0.0) for m in members),
                received_units=sum(inbound_total.get(m, 0) for m in members),
                sent_units=sum(outbound_total.get(m, 0) for m in members),
            ))
    summaries.sort(key=lambda s: (-s.allocation_pct, s.group_id))
    return summaries
