from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class KnownProxySetting(BaseModel):
    """Allow-listed router, e.g. KNOWN_PROXIES='[{"address": "0x..", "name": "Bot"}]'."""

    address: str
    name: str = "Proxy"
    type: str = "proxy"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Scan cache
    redis_url: str = "redis://localhost:6379/0"
    enable_scan_cache: bool = True
    scan_cache_ttl_sec: int = 900  # reuse a cached scan younger than this

    # Chain explorer (Etherscan-compatible API)
    explorer_api_url: str = "https://api.abscan.org/api"
    explorer_api_key: str = ""
    explorer_page_size: int = 1000
    explorer_max_pages: int = 100
    token_decimals: int = 18

    # DexScreener (liquidity pair discovery)
    dexscreener_chain: str = "abstract"
    enable_lp_discovery: bool = True

    # Fetch queue
    fetch_min_interval_ms: int = 250  # pacing between explorer requests
    fetch_task_timeout_sec: float = 15.0
    enrichment_concurrency: int = 3
    enrichment_max_holders: int = 100  # only the top N get spot-verified
    enrichment_failure_warn_ratio: float = 0.5

    # Proxy / router heuristics
    proxy_fanout_window_sec: int = 600
    proxy_fanout_min_recipients: int = 3
    proxy_outflow_share: float = 0.90
    known_proxies: list[KnownProxySetting] = [
        KnownProxySetting(
            address="0x1c4ae91dfa56e49fca849ede553759e1f5f04d9f",
            name="TG Proxy",
            type="telegram-bot",
        ),
    ]

    # Holder selection
    holders_top_n: int = 100
    holders_min_percent: float = 0.0
    hide_via_proxy_holders: bool = False
    first_buyers_limit: int = 100
    burn_addresses: list[str] = []  # extra burn sinks besides 0x…dead

    # Bubble layout
    layout_width: float = 960.0
    layout_height: float = 560.0
    layout_r_min: float = 8.0
    layout_r_max: float = 56.0
    layout_padding: float = 3.0
    layout_margin: float = 1.0
    layout_max_iterations: int = 300
    layout_epsilon: float = 0.01
    layout_seed: int = 7


settings = Settings()
