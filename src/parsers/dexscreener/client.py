import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from src.holders.types import is_address
from src.parsers.dexscreener.models import DexScreenerPair, LiquidityPair
from src.parsers.exceptions import SourceUnavailable
from src.parsers.fetch_queue import PacedFetchQueue

BASE_URL = "https://api.dexscreener.com"
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]


class DexScreenerClient:
    """Async REST client for DexScreener public API (no auth required)."""

    def __init__(self, queue: PacedFetchQueue | None = None, max_rps: float = 1.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._queue = queue or PacedFetchQueue(min_interval_sec=1.0 / max_rps)

    async def _request_with_retry(self, path: str) -> httpx.Response:
        """Execute GET with retry on 429 and transport errors."""
        for attempt in range(MAX_RETRIES):
            try:
                response = await self._queue.submit(lambda: self._client.get(path))
            except (httpx.HTTPError, SourceUnavailable) as e:
                if attempt < MAX_RETRIES - 1:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[DEXSCREENER] {type(e).__name__}, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise SourceUnavailable(f"dexscreener unreachable: {e}") from e

            if response.status_code == 429:
                delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                retry_after = response.headers.get("Retry-After")
                if retry_after and retry_after.replace(".", "", 1).isdigit():
                    delay = max(float(retry_after), delay)
                logger.debug(f"[DEXSCREENER] 429 rate limited, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            if response.status_code != 200:
                raise SourceUnavailable(
                    f"dexscreener HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            return response

        raise SourceUnavailable("dexscreener rate limit retries exhausted", status_code=429)

    async def get_token_pairs(self, chain: str, token_address: str) -> list[DexScreenerPair]:
        """Get all pairs for a token on the given chain. Malformed pairs are skipped."""
        response = await self._request_with_retry(f"/token-pairs/v1/{chain}/{token_address}")
        try:
            data = response.json()
        except ValueError as e:
            raise SourceUnavailable(f"dexscreener returned invalid JSON: {e}") from e
        if isinstance(data, list):
            pairs = data
        elif isinstance(data, dict):
            pairs = data.get("pairs", data.get("pair", []))
            if not isinstance(pairs, list):
                pairs = [pairs] if pairs else []
        else:
            raise SourceUnavailable(f"dexscreener returned {type(data).__name__}, expected list")

        parsed: list[DexScreenerPair] = []
        for raw in pairs:
            try:
                parsed.append(DexScreenerPair.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"[DEXSCREENER] {token_address[:12]}: skipping malformed pair "
                    f"({e.error_count()} errors)"
                )
        return parsed

    async def get_liquidity_pairs(self, chain: str, token_address: str) -> list[LiquidityPair]:
        """Pairs where the token is the base side, with the pool's base reserve if reported."""
        token = token_address.lower()
        found: dict[str, LiquidityPair] = {}
        for p in await self.get_token_pairs(chain, token):
            if not p.baseToken or p.baseToken.address.lower() != token:
                continue
            addr = p.pairAddress.lower()
            if not is_address(addr) or addr in found:
                continue
            base = p.liquidity.base if p.liquidity else None
            found[addr] = LiquidityPair(address=addr, dex_id=p.dexId, liquidity_base=base)
        logger.debug(f"[DEXSCREENER] {token[:12]}: {len(found)} liquidity pairs")
        return list(found.values())

    async def close(self) -> None:
        await self._queue.close()
        await self._client.aclose()
