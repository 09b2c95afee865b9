from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel


class DexScreenerToken(BaseModel):
    address: str
    name: str | None = None
    symbol: str | None = None

    model_config = {"extra": "ignore"}


class DexScreenerLiquidity(BaseModel):
    usd: Decimal | None = None
    base: Decimal | None = None
    quote: Decimal | None = None

    model_config = {"extra": "ignore"}


class DexScreenerPair(BaseModel):
    chainId: str = ""
    dexId: str = ""
    pairAddress: str = ""
    baseToken: DexScreenerToken | None = None
    quoteToken: DexScreenerToken | None = None
    liquidity: DexScreenerLiquidity | None = None
    pairCreatedAt: int | None = None

    model_config = {"extra": "ignore"}


@dataclass
class LiquidityPair:
    """A pool holding the token, with its base-token reserve in display units."""

    address: str
    dex_id: str = ""
    liquidity_base: Decimal | None = None

    def base_units(self, decimals: int) -> int | None:
        if self.liquidity_base is None or self.liquidity_base <= 0:
            return None
        return int(self.liquidity_base * (Decimal(10) ** decimals))
