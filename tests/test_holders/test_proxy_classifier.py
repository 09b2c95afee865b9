"""Tests for proxy/router detection."""

from src.holders.funding_cluster import group_by_funder
from src.holders.ledger import Ledger, build_ledger
from src.holders.proxy_classifier import (
    REASON_FAN_OUT,
    REASON_KNOWN,
    REASON_OUTFLOW,
    KnownProxy,
    ProxyThresholds,
    classify_proxies,
    is_fan_out,
    max_recipients_in_window,
    outflow_share,
)
from src.holders.types import SENTINELS, ZERO_ADDRESS, OutgoingTransfer

CONTRACT = "0x" + "c0" * 20
P = "0x" + "9a" * 20
F = "0x" + "f1" * 20
LP = "0x" + "1f" * 20
RECIPIENTS = ["0x" + format(i, "040x") for i in range(0x101, 0x106)]

DAY = 86_400


def _out(to: str, ts: int, amount: int = 10) -> OutgoingTransfer:
    return OutgoingTransfer(to_address=to, timestamp_sec=ts, amount_units=amount)


class TestFanOutWindow:
    def test_distinct_recipients_in_window(self) -> None:
        transfers = [_out(r, 10 * i) for i, r in enumerate(RECIPIENTS)]
        assert max_recipients_in_window(transfers, 600) == 5
        assert max_recipients_in_window(transfers, 15) == 2

    def test_repeat_recipient_counts_once(self) -> None:
        r = RECIPIENTS[0]
        transfers = [_out(r, 0), _out(r, 1), _out(r, 2), _out(RECIPIENTS[1], 3)]
        assert max_recipients_in_window(transfers, 600) == 2

    def test_spread_out_sends_are_not_fan_out(self) -> None:
        transfers = [_out(r, i * DAY) for i, r in enumerate(RECIPIENTS)]
        assert not is_fan_out(transfers, ProxyThresholds())

    def test_threshold_boundary(self) -> None:
        transfers = [_out(RECIPIENTS[0], 0), _out(RECIPIENTS[1], 300), _out(RECIPIENTS[2], 600)]
        assert is_fan_out(transfers, ProxyThresholds(window_sec=600, min_recipients=3))
        assert not is_fan_out(transfers, ProxyThresholds(window_sec=599, min_recipients=3))
        assert not is_fan_out(transfers, ProxyThresholds(window_sec=600, min_recipients=4))

    def test_unsorted_input(self) -> None:
        transfers = [_out(RECIPIENTS[2], 50), _out(RECIPIENTS[0], 0), _out(RECIPIENTS[1], 25)]
        assert is_fan_out(transfers, ProxyThresholds())


class TestOutflowShare:
    def test_ratio(self) -> None:
        assert outflow_share(95, 5) == 0.95
        assert outflow_share(50, 50) == 0.5

    def test_zero_flow_is_none(self) -> None:
        assert outflow_share(0, 0) is None

    def test_outflow_heuristic(self) -> None:
        ledger = Ledger(
            contract=CONTRACT,
            outbound_total_by_address={P: 95, F: 40},
            inbound_total_by_address={P: 5, F: 60},
        )
        result = classify_proxies(ledger)

        assert result.proxies == {P}
        assert result.reasons[P] == [REASON_OUTFLOW]

    def test_zero_flow_never_qualifies(self) -> None:
        ledger = Ledger(
            contract=CONTRACT,
            outgoing_by_sender={P: []},
            outbound_total_by_address={P: 0},
        )
        assert classify_proxies(ledger).proxies == set()


class TestClassifyProxies:
    def test_burst_sender_is_proxy_and_recipients_grouped(self, make_event) -> None:
        """P funds five wallets inside a minute."""
        events = [make_event(ZERO_ADDRESS, P, 1000, ts=0)]
        events += [make_event(P, r, 10, ts=1000 + 10 * i) for i, r in enumerate(RECIPIENTS)]
        ledger = build_ledger(events, CONTRACT)

        result = classify_proxies(ledger, thresholds=ProxyThresholds(600, 3, 0.9))
        assert P in result.proxies
        assert result.reasons[P] == [REASON_FAN_OUT]

        clusters = group_by_funder(
            ledger.first_funder_by_address, result.proxies, ledger.holders,
            ignore=SENTINELS,
        )
        for r in RECIPIENTS:
            assert clusters.proxy_group_of[r] == P
            assert r not in clusters.shared_group_of

    def test_slow_funder_is_not_proxy(self, make_event) -> None:
        events = [
            make_event(ZERO_ADDRESS, F, 200, ts=0),
            make_event(F, RECIPIENTS[0], 50, ts=DAY),
            make_event(F, RECIPIENTS[1], 50, ts=4 * DAY),
        ]
        result = classify_proxies(build_ledger(events, CONTRACT))
        assert F not in result.proxies

    def test_known_proxy_always_included(self) -> None:
        ledger = Ledger(contract=CONTRACT)
        known = KnownProxy(address=P.upper().replace("0X", "0x"), name="TG Proxy", type="telegram-bot")

        result = classify_proxies(ledger, known_proxies=[known])
        assert result.proxies == {P}
        assert result.reasons[P] == [REASON_KNOWN]
        assert result.known[P].name == "TG Proxy"

    def test_known_and_heuristic_is_ambiguous(self) -> None:
        ledger = Ledger(
            contract=CONTRACT,
            outbound_total_by_address={P: 99},
            inbound_total_by_address={P: 1},
        )
        result = classify_proxies(ledger, known_proxies=[KnownProxy(address=P)])

        assert result.is_proxy(P)
        assert P in result.ambiguous
        assert result.reasons[P] == [REASON_KNOWN, REASON_OUTFLOW]

    def test_sentinels_contract_and_excluded_skipped(self, make_event) -> None:
        """The mint source and a pool that pays out to many buyers aren't routers."""
        events = [make_event(ZERO_ADDRESS, LP, 1000, ts=0)]
        events += [make_event(LP, r, 10, ts=5 * i) for i, r in enumerate(RECIPIENTS)]
        ledger = build_ledger(events, CONTRACT)

        assert LP in classify_proxies(ledger).proxies
        result = classify_proxies(ledger, exclude=[LP])
        assert result.proxies == set()
        assert ZERO_ADDRESS not in result.proxies
