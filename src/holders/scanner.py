"""Holder scan pipeline.

events -> ledger -> proxy classifier -> funding clusters -> graph -> layout

``analyze_events`` is the pure, synchronous core. ``HolderScanner`` wraps
it with the explorer/DexScreener fetches, top-holder spot verification
and the scan cache.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from loguru import logger

from config.settings import Settings
from src.holders.bubble_layout import BubbleLayout, LayoutConfig, layout_bubbles
from src.holders.funding_cluster import GroupSummary, group_by_funder, summarize_groups
from src.holders.holder_graph import (
    HolderGraph,
    build_holder_graph,
    effective_balances,
    percent_of_supply,
)
from src.holders.holder_stats import (
    DistributionBucket,
    HolderSummary,
    distribution_buckets,
    summarize,
    tiny_holder_count,
)
from src.holders.ledger import Ledger, build_ledger, sorted_events
from src.holders.proxy_classifier import KnownProxy, ProxyThresholds, classify_proxies
from src.holders.scan_cache import ScanCache
from src.holders.types import DEAD_ADDRESS, SENTINELS, Tag, TransferEvent, normalize_address
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.dexscreener.models import LiquidityPair
from src.parsers.exceptions import SourceUnavailable
from src.parsers.explorer.client import ExplorerClient
from src.parsers.fetch_queue import BoundedFetchPool


@dataclass(frozen=True)
class ScanOptions:
    thresholds: ProxyThresholds = field(default_factory=ProxyThresholds)
    known_proxies: tuple[KnownProxy, ...] = ()
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    width: float = 960.0
    height: float = 560.0
    top_n: int | None = 100
    min_percent: float = 0.0
    exclude_via_proxy: bool = False
    burn_addresses: tuple[str, ...] = ()
    first_buyers_limit: int = 100

    @classmethod
    def from_settings(cls, s: Settings) -> "ScanOptions":
        return cls(
            thresholds=ProxyThresholds(
                window_sec=s.proxy_fanout_window_sec,
                min_recipients=s.proxy_fanout_min_recipients,
                outflow_share=s.proxy_outflow_share,
            ),
            known_proxies=tuple(
                KnownProxy(address=p.address, name=p.name, type=p.type)
                for p in s.known_proxies
            ),
            layout=LayoutConfig(
                r_min=s.layout_r_min,
                r_max=s.layout_r_max,
                padding=s.layout_padding,
                margin=s.layout_margin,
                max_iterations=s.layout_max_iterations,
                epsilon=s.layout_epsilon,
                seed=s.layout_seed,
            ),
            width=s.layout_width,
            height=s.layout_height,
            top_n=s.holders_top_n,
            min_percent=s.holders_min_percent,
            exclude_via_proxy=s.hide_via_proxy_holders,
            burn_addresses=tuple(a.lower() for a in s.burn_addresses),
            first_buyers_limit=s.first_buyers_limit,
        )


@dataclass
class ScanResult:
    contract: str
    ledger: Ledger
    graph: HolderGraph
    layout: BubbleLayout
    summary: HolderSummary
    groups: list[GroupSummary] = field(default_factory=list)
    buckets: list[DistributionBucket] = field(default_factory=list)
    proxies: dict[str, list[str]] = field(default_factory=dict)
    lp_addresses: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    balance_mismatches: dict[str, tuple[int, int]] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return self.layout.empty

    def to_dict(self) -> dict:
        return {
            "contract": self.contract,
            "empty": self.empty,
            "graph": self.graph.to_dict(),
            "transform": self.layout.transform.to_dict(),
            "summary": self.summary.to_dict(),
            "groups": [g.to_dict() for g in self.groups],
            "buckets": [b.to_dict() for b in self.buckets],
            "tinyHolders": tiny_holder_count(self.graph.nodes),
            "proxies": self.proxies,
            "lpAddresses": self.lp_addresses,
            "firstBuyers": self.ledger.first_buyers,
            "warnings": self.warnings,
            "balanceMismatches": {
                addr: {"ledger": str(expected), "onchain": str(actual)}
                for addr, (expected, actual) in self.balance_mismatches.items()
            },
        }


@dataclass
class ScanOutcome:
    data: dict
    timestamp_ms: int | None = None
    from_cache: bool = False
    result: ScanResult | None = None


def analyze_events(
    events: Sequence[TransferEvent],
    contract: str,
    *,
    options: ScanOptions | None = None,
    lp_addresses: Iterable[str] = (),
    lp_balances: Mapping[str, int] | None = None,
    creator: str | None = None,
) -> ScanResult:
    """Run the synchronous analysis over an already-fetched transfer log.

    No events, or no holder with a positive share, yields an empty layout
    rather than an error. Raises LedgerInconsistency for a broken ledger.
    """
    options = options or ScanOptions()
    contract = normalize_address(contract)
    lps = sorted({normalize_address(a) for a in lp_addresses})

    ledger = build_ledger(
        events, contract, skip_funders=lps, first_buyers_limit=options.first_buyers_limit
    )
    classification = classify_proxies(
        ledger,
        thresholds=options.thresholds,
        known_proxies=options.known_proxies,
        exclude=lps,
    )
    holders = ledger.holders
    clusters = group_by_funder(
        ledger.first_funder_by_address,
        classification.proxies,
        holders,
        ignore=set(SENTINELS) | {contract} | set(lps),
    )

    creator = creator.lower() if creator else ledger.first_mint_recipient()
    burns = {DEAD_ADDRESS} | set(options.burn_addresses)
    graph = build_holder_graph(
        ledger,
        classification,
        clusters,
        lp_addresses=lps,
        lp_balances=lp_balances,
        creator=creator,
        burn_addresses=burns,
        min_percent=options.min_percent,
        top_n=options.top_n,
        exclude_via_proxy=options.exclude_via_proxy,
    )
    layout = layout_bubbles(graph.nodes, options.width, options.height, config=options.layout)
    graph.nodes = layout.nodes if not layout.empty else graph.nodes

    supply = ledger.supply_units
    balances = effective_balances(ledger, lp_balances)
    pct_by_addr = {a: percent_of_supply(b, supply) for a, b in balances.items()}
    groups = summarize_groups(
        clusters, pct_by_addr, ledger.inbound_total_by_address, ledger.outbound_total_by_address
    )

    result = ScanResult(
        contract=contract,
        ledger=ledger,
        graph=graph,
        layout=layout,
        summary=summarize(ledger, creator, balances),
        groups=groups,
        buckets=distribution_buckets(graph.nodes),
        proxies={a: classification.reasons.get(a, []) for a in sorted(classification.proxies)},
        lp_addresses=lps,
    )
    if result.empty:
        logger.info(f"[SCAN] {contract[:12]}: no qualifying holders ({len(events)} events)")
    return result


class HolderScanner:
    """Fetch, analyze, verify and cache one token's holder map."""

    def __init__(
        self,
        explorer: ExplorerClient,
        *,
        dexscreener: DexScreenerClient | None = None,
        cache: ScanCache | None = None,
        options: ScanOptions | None = None,
        chain: str = "abstract",
        decimals: int = 18,
        cache_ttl_sec: int = 900,
        verify_concurrency: int = 3,
        verify_max_holders: int = 100,
        verify_timeout_sec: float = 15.0,
        failure_warn_ratio: float = 0.5,
    ) -> None:
        self._explorer = explorer
        self._dexscreener = dexscreener
        self._cache = cache
        self._options = options or ScanOptions()
        self._chain = chain
        self._decimals = decimals
        self._cache_ttl = cache_ttl_sec
        self._pool = BoundedFetchPool(verify_concurrency, task_timeout_sec=verify_timeout_sec)
        self._verify_max = verify_max_holders
        self._failure_warn_ratio = failure_warn_ratio

    @classmethod
    def from_settings(
        cls,
        s: Settings,
        explorer: ExplorerClient,
        *,
        dexscreener: DexScreenerClient | None = None,
        cache: ScanCache | None = None,
    ) -> "HolderScanner":
        return cls(
            explorer,
            dexscreener=dexscreener,
            cache=cache,
            options=ScanOptions.from_settings(s),
            chain=s.dexscreener_chain,
            decimals=s.token_decimals,
            cache_ttl_sec=s.scan_cache_ttl_sec,
            verify_concurrency=s.enrichment_concurrency,
            verify_max_holders=s.enrichment_max_holders,
            verify_timeout_sec=s.fetch_task_timeout_sec,
            failure_warn_ratio=s.enrichment_failure_warn_ratio,
        )

    async def scan(
        self, contract: str, *, force: bool = False, creator: str | None = None
    ) -> ScanOutcome:
        """Scan a token, reusing a cached scan younger than the TTL unless ``force``.

        Raises SourceUnavailable if the transfer log itself can't be fetched
        and LedgerInconsistency if it doesn't add up.
        """
        contract = normalize_address(contract)

        if self._cache is not None and not force:
            cached = await self._cache.get(contract)
            if cached is not None and cached.age_sec() < self._cache_ttl:
                logger.debug(f"[SCAN] {contract[:12]}: cache hit ({cached.age_sec():.0f}s old)")
                return ScanOutcome(data=cached.data, timestamp_ms=cached.timestamp_ms, from_cache=True)

        events = sorted_events(await self._explorer.get_transfer_events(contract))
        warnings: list[str] = []

        pairs = await self._discover_pairs(contract, warnings)
        lp_balances = await self._lp_balances(contract, pairs, warnings)

        result = analyze_events(
            events,
            contract,
            options=self._options,
            lp_addresses=[p.address for p in pairs],
            lp_balances=lp_balances,
            creator=creator,
        )
        result.warnings.extend(warnings)
        if not result.empty:
            await self._verify_top_holders(result)

        data = result.to_dict()
        ts = None
        if self._cache is not None:
            ts = await self._cache.put(contract, data)

        logger.info(
            f"[SCAN] {contract[:12]}: {result.summary.total_holders} holders, "
            f"{len(result.graph.nodes)} shown, {len(result.proxies)} proxies, "
            f"{len(result.groups)} groups, {len(result.warnings)} warnings"
        )
        return ScanOutcome(data=data, timestamp_ms=ts, from_cache=False, result=result)

    async def _discover_pairs(self, contract: str, warnings: list[str]) -> list[LiquidityPair]:
        if self._dexscreener is None:
            return []
        try:
            return await self._dexscreener.get_liquidity_pairs(self._chain, contract)
        except SourceUnavailable as e:
            logger.warning(f"[SCAN] {contract[:12]}: LP discovery failed: {e}")
            warnings.append(f"lp_discovery_failed: {e}")
            return []

    async def _lp_balances(
        self, contract: str, pairs: list[LiquidityPair], warnings: list[str]
    ) -> dict[str, int]:
        """Pool-reported base reserve, else the explorer balance of the pair."""
        balances: dict[str, int] = {}
        missing: list[str] = []
        for p in pairs:
            units = p.base_units(self._decimals)
            if units is None:
                missing.append(p.address)
            else:
                balances[p.address] = units
        if missing:
            res = await self._pool.run(
                missing, lambda a: self._explorer.get_token_balance(contract, a)
            )
            balances.update(res.results)
            for addr, err in res.errors.items():
                warnings.append(f"lp_balance_failed {addr}: {err}")
        return balances

    async def _verify_top_holders(self, result: ScanResult) -> None:
        """Spot-check ledger balances of the top holders against the explorer."""
        targets = [
            n.address for n in result.graph.nodes if Tag.LP not in n.tags
        ][: self._verify_max]
        if not targets:
            return
        res = await self._pool.run(
            targets, lambda a: self._explorer.get_token_balance(result.contract, a)
        )
        ledger_balances = result.ledger.balances
        for addr, onchain in res.results.items():
            expected = ledger_balances.get(addr, 0)
            if onchain != expected:
                result.balance_mismatches[addr] = (expected, onchain)
        if result.balance_mismatches:
            logger.warning(
                f"[SCAN] {result.contract[:12]}: {len(result.balance_mismatches)} "
                f"holder balances differ from chain"
            )
        if res.exceeds(self._failure_warn_ratio):
            result.warnings.append(
                f"partial_verification: {res.failed}/{res.failed + res.succeeded} "
                f"balance lookups failed"
            )
