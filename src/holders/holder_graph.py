"""Render-ready holder graph: tagged nodes plus proxy/shared funding edges."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from loguru import logger

from src.holders.funding_cluster import KIND_PROXY, KIND_SHARED, FundingClusters
from src.holders.ledger import Ledger
from src.holders.proxy_classifier import ProxyClassification
from src.holders.types import HolderNode, Tag


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    kind: str  # "proxy" | "shared"

    def to_dict(self) -> dict:
        return {"source": self.source, "target": self.target, "kind": self.kind}


@dataclass
class HolderGraph:
    nodes: list[HolderNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def node(self, address: str) -> HolderNode | None:
        addr = address.lower()
        for n in self.nodes:
            if n.address == addr:
                return n
        return None

    def neighbors(self) -> dict[str, set[str]]:
        """Undirected adjacency over visible nodes."""
        visible = {n.address for n in self.nodes}
        adj: dict[str, set[str]] = {}
        for e in self.edges:
            if e.source not in visible or e.target not in visible:
                continue
            adj.setdefault(e.source, set()).add(e.target)
            adj.setdefault(e.target, set()).add(e.source)
        return adj

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def percent_of_supply(balance_units: int, supply_units: int) -> float:
    if supply_units <= 0:
        return 0.0
    return balance_units / supply_units * 100


def effective_balances(
    ledger: Ledger, lp_balances: Mapping[str, int] | None = None
) -> dict[str, int]:
    """Ledger holder balances with pool-reported LP reserves swapped in.

    Reported reserves can't push the holder sum past ``ledger.supply_units``.
    """
    balances = dict(ledger.holders)
    headroom = max(0, ledger.supply_units - sum(balances.values()))
    for addr, units in (lp_balances or {}).items():
        addr = addr.lower()
        if units <= 0:
            continue
        current = balances.get(addr, 0)
        capped = min(units, current + headroom)
        if capped > 0:
            headroom -= max(0, capped - current)
            balances[addr] = capped
    return balances


def build_holder_graph(
    ledger: Ledger,
    classification: ProxyClassification,
    clusters: FundingClusters,
    *,
    lp_addresses: Iterable[str] = (),
    lp_balances: Mapping[str, int] | None = None,
    creator: str | None = None,
    burn_addresses: Iterable[str] = (),
    min_percent: float = 0.0,
    top_n: int | None = None,
    exclude_via_proxy: bool = False,
) -> HolderGraph:
    """Turn ledger + classification into tagged nodes and funding edges.

    Percent of supply always uses ``ledger.supply_units`` (minted minus
    burned). ``lp_balances`` overrides the ledger balance of a liquidity
    pair when the pool reported its own base reserve.
    """
    lps = {a.lower() for a in lp_addresses}
    burns = {a.lower() for a in burn_addresses}
    creator = creator.lower() if creator else None
    supply = ledger.supply_units

    balances = effective_balances(ledger, lp_balances)

    nodes: list[HolderNode] = []
    for addr, units in balances.items():
        pct = percent_of_supply(units, supply)
        tags = clusters.tags_for(addr)
        if addr in lps:
            tags.add(Tag.LP)
        if addr == creator:
            tags.add(Tag.CREATOR)
        if addr in burns:
            tags.add(Tag.BURN)
        if classification.is_proxy(addr):
            tags.add(Tag.PROXY)

        ff = ledger.first_funder_by_address.get(addr)
        nodes.append(HolderNode(
            address=addr,
            balance_units=units,
            percent_of_supply=pct,
            tags=tags,
            proxy_group_id=clusters.proxy_group_of.get(addr),
            shared_funder_group_id=clusters.shared_group_of.get(addr),
            initial_units=ff.amount_units if ff else None,
        ))

    if exclude_via_proxy:
        nodes = [n for n in nodes if Tag.VIA_PROXY not in n.tags]
    if min_percent > 0:
        nodes = [n for n in nodes if n.percent_of_supply >= min_percent]

    nodes.sort(key=lambda n: (-n.balance_units, n.address))
    if top_n is not None:
        nodes = nodes[:top_n]

    edges = _funding_edges(clusters, {n.address for n in nodes})

    logger.debug(
        f"[GRAPH] {ledger.contract[:12]}: {len(nodes)} nodes, {len(edges)} edges "
        f"(of {len(balances)} holders)"
    )
    return HolderGraph(nodes=nodes, edges=edges)


def _funding_edges(clusters: FundingClusters, visible: set[str]) -> list[GraphEdge]:
    """Hub -> member edges, kept only when the member is visible."""
    edges: list[GraphEdge] = []
    for kind, groups in ((KIND_PROXY, clusters.proxy_groups), (KIND_SHARED, clusters.shared_groups)):
        for hub, members in sorted(groups.items()):
            edges.extend(
                GraphEdge(source=hub, target=m, kind=kind) for m in members if m in visible
            )
    return edges
