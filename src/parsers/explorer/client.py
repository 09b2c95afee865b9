"""Etherscan-compatible explorer client: token transfer log and spot balances.

Every request goes through one PacedFetchQueue so the whole scan stays
inside the explorer's per-key quota.
"""

import asyncio
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from src.holders.types import TransferEvent, normalize_address
from src.parsers.exceptions import SourceUnavailable
from src.parsers.explorer.models import ExplorerResponse
from src.parsers.fetch_queue import PacedFetchQueue

DEFAULT_BASE_URL = "https://api.abscan.org/api"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]
NO_RESULTS_MESSAGES = ("no transactions found", "no records found")
RATE_LIMIT_HINT = "rate limit"


class ExplorerClient:
    """Async HTTP client for the explorer ``module=account`` endpoints."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        *,
        queue: PacedFetchQueue | None = None,
        page_size: int = 1000,
        max_pages: int = 100,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._queue = queue or PacedFetchQueue()
        self._page_size = page_size
        self._max_pages = max_pages
        self._client = httpx.AsyncClient(timeout=20.0, headers={"Accept": "application/json"})

    @property
    def queue(self) -> PacedFetchQueue:
        return self._queue

    async def close(self) -> None:
        await self._queue.close()
        await self._client.aclose()

    async def _get(self, params: dict[str, Any]) -> dict:
        """GET through the paced queue, retrying 429s and explorer throttle replies."""
        if self._api_key:
            params = {**params, "apikey": self._api_key}

        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._queue.submit(
                    lambda: self._client.get(self._base_url, params=params)
                )
            except (httpx.HTTPError, SourceUnavailable) as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                    continue
                raise SourceUnavailable(f"explorer unreachable: {e}") from e

            if resp.status_code == 429:
                delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                logger.debug(f"[EXPLORER] 429 rate limited, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            if resp.status_code != 200:
                raise SourceUnavailable(
                    f"explorer HTTP {resp.status_code}", status_code=resp.status_code
                )

            try:
                data = resp.json()
            except ValueError as e:
                raise SourceUnavailable(f"explorer returned invalid JSON: {e}") from e
            if not isinstance(data, dict):
                raise SourceUnavailable(f"explorer returned {type(data).__name__}, expected object")
            result = data.get("result")
            if (
                str(data.get("status")) == "0"
                and isinstance(result, str)
                and RATE_LIMIT_HINT in result.lower()
                and attempt < MAX_RETRIES
            ):
                await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                continue
            return data

        raise SourceUnavailable("explorer rate limit retries exhausted", status_code=429)

    async def get_transfer_events(self, contract: str) -> list[TransferEvent]:
        """Full transfer log for a token, oldest first.

        Pages through ``tokentx`` until a short page or the page cap.
        """
        contract = normalize_address(contract)
        events: list[TransferEvent] = []

        for page in range(1, self._max_pages + 1):
            data = await self._get({
                "module": "account",
                "action": "tokentx",
                "contractaddress": contract,
                "page": page,
                "offset": self._page_size,
                "sort": "asc",
            })
            rows = _parse_transfers(data)
            events.extend(rows)
            if len(rows) < self._page_size:
                break
        else:
            logger.warning(
                f"[EXPLORER] {contract[:12]}: hit page cap ({self._max_pages}), "
                f"log may be truncated"
            )

        logger.debug(f"[EXPLORER] {contract[:12]}: fetched {len(events)} transfers")
        return events

    async def get_token_balance(self, contract: str, address: str) -> int:
        """Current on-chain balance in base units, for spot verification."""
        data = await self._get({
            "module": "account",
            "action": "tokenbalance",
            "contractaddress": normalize_address(contract),
            "address": normalize_address(address),
            "tag": "latest",
        })
        if str(data.get("status")) != "1":
            raise SourceUnavailable(f"tokenbalance failed: {data.get('result') or data.get('message')}")
        try:
            return int(data.get("result") or 0)
        except (TypeError, ValueError) as e:
            raise SourceUnavailable(f"bad tokenbalance result {data.get('result')!r}") from e


def _parse_transfers(data: dict) -> list[TransferEvent]:
    """Parse a ``tokentx`` page. "No transactions found" is an empty page, not an error."""
    try:
        parsed = ExplorerResponse.model_validate(data)
    except ValidationError as e:
        raise SourceUnavailable(f"malformed tokentx page: {e.error_count()} errors") from e
    if parsed.status != "1":
        message = (parsed.message or "").lower()
        text = parsed.result.lower() if isinstance(parsed.result, str) else ""
        if any(m in message or m in text for m in NO_RESULTS_MESSAGES):
            return []
        if isinstance(parsed.result, list) and not parsed.result:
            return []
        raise SourceUnavailable(f"tokentx failed: {parsed.result or parsed.message}")
    if not isinstance(parsed.result, list):
        return []
    return [row.to_event() for row in parsed.result]
