"""Tests for the Etherscan-compatible explorer client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.parsers.exceptions import SourceUnavailable
from src.parsers.explorer.client import ExplorerClient, _parse_transfers
from src.parsers.explorer.models import ExplorerTokenTransfer
from src.parsers.fetch_queue import PacedFetchQueue

TOKEN = "0x" + "ab" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20


def _row(i: int, src: str = ALICE, dst: str = BOB, value: str = "1000") -> dict:
    return {
        "blockNumber": str(100 + i),
        "timeStamp": str(1_700_000_000 + i),
        "hash": f"0xhash{i}",
        "from": src,
        "to": dst,
        "value": value,
        "contractAddress": TOKEN,
        "tokenDecimal": "18",
        "logIndex": str(i),
    }


def _resp(payload: dict, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


def _client(**kw) -> ExplorerClient:
    client = ExplorerClient("key", queue=PacedFetchQueue(min_interval_sec=0), **kw)
    client._client = AsyncMock()
    return client


class TestModels:
    def test_row_to_event(self) -> None:
        row = ExplorerTokenTransfer.model_validate(_row(3, src=ALICE.upper().replace("0X", "0x")))
        ev = row.to_event()
        assert ev.from_address == ALICE
        assert ev.to_address == BOB
        assert ev.amount_units == 1000
        assert ev.block_number == 103
        assert ev.log_index == 3

    def test_blank_fields(self) -> None:
        row = ExplorerTokenTransfer.model_validate({**_row(0), "logIndex": "", "tokenDecimal": ""})
        assert row.logIndex == 0
        assert row.tokenDecimal is None

    def test_large_values_exact(self) -> None:
        big = "115792089237316195423570985008687907853269984665640564039457584007913129639935"
        row = ExplorerTokenTransfer.model_validate(_row(0, value=big))
        assert row.to_event().amount_units == int(big)


class TestParseTransfers:
    def test_no_transactions_is_empty(self) -> None:
        assert _parse_transfers({"status": "0", "message": "No transactions found", "result": []}) == []

    def test_error_raises(self) -> None:
        with pytest.raises(SourceUnavailable):
            _parse_transfers({"status": "0", "message": "NOTOK", "result": "Invalid API Key"})

    def test_numeric_status(self) -> None:
        events = _parse_transfers({"status": 1, "message": "OK", "result": [_row(0)]})
        assert len(events) == 1


class TestExplorerClient:
    @pytest.mark.asyncio
    async def test_pages_until_short_page(self) -> None:
        client = _client(page_size=2)
        client._client.get = AsyncMock(side_effect=[
            _resp({"status": "1", "message": "OK", "result": [_row(0), _row(1)]}),
            _resp({"status": "1", "message": "OK", "result": [_row(2)]}),
        ])

        events = await client.get_transfer_events(TOKEN)

        assert [e.block_number for e in events] == [100, 101, 102]
        assert client._client.get.await_count == 2
        params = client._client.get.await_args_list[1].kwargs["params"]
        assert params["page"] == 2
        assert params["action"] == "tokentx"
        assert params["sort"] == "asc"
        assert params["apikey"] == "key"

    @pytest.mark.asyncio
    async def test_page_cap(self) -> None:
        client = _client(page_size=1, max_pages=2)
        client._client.get = AsyncMock(
            return_value=_resp({"status": "1", "message": "OK", "result": [_row(0)]})
        )
        events = await client.get_transfer_events(TOKEN)
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_empty_token(self) -> None:
        client = _client()
        client._client.get = AsyncMock(
            return_value=_resp({"status": "0", "message": "No transactions found", "result": []})
        )
        assert await client.get_transfer_events(TOKEN) == []

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        client = _client()
        client._client.get = AsyncMock(return_value=_resp({}, status_code=503))

        with pytest.raises(SourceUnavailable) as exc_info:
            await client.get_transfer_events(TOKEN)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rate_limit_retry(self) -> None:
        client = _client()
        client._client.get = AsyncMock(side_effect=[
            _resp({}, status_code=429),
            _resp({"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}),
            _resp({"status": "1", "message": "OK", "result": "4200"}),
        ])

        with patch("src.parsers.explorer.client.asyncio.sleep", new=AsyncMock()):
            balance = await client.get_token_balance(TOKEN, ALICE)

        assert balance == 4200
        assert client._client.get.await_count == 3

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self) -> None:
        client = _client()
        client._client.get = AsyncMock(side_effect=httpx.TimeoutException("timeout"))

        with patch("src.parsers.explorer.client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(SourceUnavailable):
                await client.get_token_balance(TOKEN, ALICE)

    @pytest.mark.asyncio
    async def test_balance_error_status(self) -> None:
        client = _client()
        client._client.get = AsyncMock(
            return_value=_resp({"status": "0", "message": "NOTOK", "result": "Error! Invalid address"})
        )
        with pytest.raises(SourceUnavailable):
            await client.get_token_balance(TOKEN, ALICE)

    @pytest.mark.asyncio
    async def test_invalid_json_raises_source_unavailable(self) -> None:
        client = _client()
        resp = _resp({})
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        client._client.get = AsyncMock(return_value=resp)

        with pytest.raises(SourceUnavailable, match="invalid JSON"):
            await client.get_transfer_events(TOKEN)

    @pytest.mark.asyncio
    async def test_protocol_error_exhausts_retries(self) -> None:
        client = _client()
        client._client.get = AsyncMock(side_effect=httpx.RemoteProtocolError("peer closed"))

        with patch("src.parsers.explorer.client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(SourceUnavailable, match="unreachable"):
                await client.get_transfer_events(TOKEN)
        assert client._client.get.await_count == 3

    @pytest.mark.asyncio
    async def test_malformed_row_raises_source_unavailable(self) -> None:
        client = _client()
        client._client.get = AsyncMock(return_value=_resp(
            {"status": "1", "message": "OK", "result": [{**_row(0), "value": "lots"}]}
        ))

        with pytest.raises(SourceUnavailable, match="malformed"):
            await client.get_transfer_events(TOKEN)
