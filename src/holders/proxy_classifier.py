"""Proxy/router detection: wallets that relay funds instead of holding.

Sniper bots and bundler routers fund many fresh wallets in a burst, or
pass almost everything they receive straight through. Two heuristics,
OR-combined, plus a caller-supplied allow-list of known routers:
1. Fan-out: >= K distinct recipients inside any W-second window
2. Outflow share: outbound / (outbound + inbound) >= P
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from src.holders.ledger import Ledger
from src.holders.types import SENTINELS, OutgoingTransfer

REASON_KNOWN = "known"
REASON_FAN_OUT = "fan_out"
REASON_OUTFLOW = "outflow_share"


@dataclass(frozen=True)
class ProxyThresholds:
    """Heuristic thresholds. Defaults match the values used in production scans."""

    window_sec: int = 600
    min_recipients: int = 3
    outflow_share: float = 0.90


@dataclass(frozen=True)
class KnownProxy:
    """Allow-listed router with a display name (e.g. a Telegram trading bot)."""

    address: str
    name: str = "Proxy"
    type: str = "proxy"


@dataclass
class ProxyClassification:
    """Proxy set plus why each address landed in it."""

    proxies: set[str] = field(default_factory=set)
    reasons: dict[str, list[str]] = field(default_factory=dict)
    ambiguous: set[str] = field(default_factory=set)
    known: dict[str, KnownProxy] = field(default_factory=dict)

    def is_proxy(self, address: str) -> bool:
        return address in self.proxies


def max_recipients_in_window(
    transfers: list[OutgoingTransfer], window_sec: int
) -> int:
    """Largest count of distinct recipients inside any window of ``window_sec``.

    ``transfers`` must be sorted by timestamp.
    """
    best = 0
    in_window: Counter[str] = Counter()
    left = 0
    for right, tr in enumerate(transfers):
        in_window[tr.to_address] += 1
        while tr.timestamp_sec - transfers[left].timestamp_sec > window_sec:
            gone = transfers[left].to_address
            in_window[gone] -= 1
            if in_window[gone] == 0:
                del in_window[gone]
            left += 1
        best = max(best, len(in_window))
    return best


def is_fan_out(
    transfers: list[OutgoingTransfer], thresholds: ProxyThresholds
) -> bool:
    if len(transfers) < thresholds.min_recipients:
        return False
    ordered = sorted(transfers, key=lambda t: t.timestamp_sec)
    return max_recipients_in_window(ordered, thresholds.window_sec) >= thresholds.min_recipients


def outflow_share(outbound: int, inbound: int) -> float | None:
    """Share of total flow that left the address. None when there was no flow."""
    total = outbound + inbound
    if total <= 0:
        return None
    return outbound / total


def classify_proxies(
    ledger: Ledger,
    *,
    thresholds: ProxyThresholds | None = None,
    known_proxies: Iterable[KnownProxy] = (),
    exclude: Iterable[str] = (),
) -> ProxyClassification:
    """Build the proxy set for one scan.

    Sentinels, the token contract and ``exclude`` (liquidity pairs) are
    never heuristic candidates. Allow-listed routers are always proxies.
    """
    thresholds = thresholds or ProxyThresholds()
    skip = set(SENTINELS) | {ledger.contract} | {a.lower() for a in exclude}

    result = ProxyClassification()
    for kp in known_proxies:
        addr = kp.address.lower()
        result.known[addr] = kp
        result.proxies.add(addr)
        result.reasons[addr] = [REASON_KNOWN]

    senders = set(ledger.outgoing_by_sender) | set(ledger.outbound_total_by_address)
    for sender in sorted(senders):
        if sender in skip:
            continue
        matched: list[str] = []

        if is_fan_out(ledger.outgoing_by_sender.get(sender, []), thresholds):
            matched.append(REASON_FAN_OUT)

        share = outflow_share(
            ledger.outbound_total_by_address.get(sender, 0),
            ledger.inbound_total_by_address.get(sender, 0),
        )
        if share is not None and share >= thresholds.outflow_share:
            matched.append(REASON_OUTFLOW)

        if not matched:
            continue
        if sender in result.known:
            result.ambiguous.add(sender)
            result.reasons[sender].extend(matched)
            continue
        result.proxies.add(sender)
        result.reasons[sender] = matched

    heuristic = len(result.proxies) - len(result.known)
    if heuristic or result.ambiguous:
        logger.info(
            f"[PROXY] {ledger.contract[:12]}: {heuristic} heuristic proxies, "
            f"{len(result.known)} known, {len(result.ambiguous)} ambiguous "
            f"(known list wins)"
        )
    return result
