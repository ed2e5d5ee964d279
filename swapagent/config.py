import os

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


def _default_price_ratios() -> Dict[str, Dict[str, Decimal]]:
    """Indicative cross rates keyed by canonical routing symbol."""

    stable = {
        'WPOL': Decimal('2.5'),
        'WETH': Decimal('0.00038'),
        'WBTC': Decimal('0.0000163'),
        'LINK': Decimal('0.075'),
    }
    return {
        'WPOL': {
            'USDC': Decimal('0.4'),
            'USDT': Decimal('0.4'),
            'DAI': Decimal('0.4'),
            'WETH': Decimal('0.00015'),
            'WBTC': Decimal('0.0000065'),
            'LINK': Decimal('0.03'),
        },
        'USDC': {**stable, 'DAI': Decimal('1.0'), 'USDT': Decimal('1.0')},
        'USDT': {**stable, 'USDC': Decimal('1.0'), 'DAI': Decimal('1.0')},
        'DAI': {**stable, 'USDC': Decimal('1.0'), 'USDT': Decimal('1.0')},
        'WETH': {
            'USDC': Decimal('2600'),
            'USDT': Decimal('2600'),
            'DAI': Decimal('2600'),
            'WPOL': Decimal('6500'),
            'WBTC': Decimal('0.042'),
            'LINK': Decimal('195'),
        },
        'WBTC': {
            'USDC': Decimal('61500'),
            'USDT': Decimal('61500'),
            'DAI': Decimal('61500'),
            'WPOL': Decimal('153750'),
            'WETH': Decimal('23.8'),
            'LINK': Decimal('4615'),
        },
        'LINK': {
            'USDC': Decimal('13.33'),
            'USDT': Decimal('13.33'),
            'DAI': Decimal('13.33'),
            'WPOL': Decimal('33.33'),
            'WETH': Decimal('0.0051'),
            'WBTC': Decimal('0.000217'),
        },
    }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.z_api_key:
            fallback = os.getenv("ZAI_API_KEY") or os.getenv("ZAI_KEY")
            if fallback:
                object.__setattr__(self, "z_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # LLM Provider Settings
    llm_provider: str = Field(default="anthropic", description="Default LLM provider")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    z_api_key: str = Field(
        default="",
        description="Z AI API key",
        validation_alias=AliasChoices("z_api_key", "zai_api_key", "Z_API_KEY", "ZAI_API_KEY"),
    )
    llm_model: str = Field(default="claude-sonnet-4-20250514", description="Default LLM model")
    max_tokens: int = Field(default=512, description="Maximum tokens for LLM response")
    temperature: float = Field(default=0.0, description="LLM temperature for intent extraction")
    reply_temperature: float = Field(default=0.7, description="LLM temperature for conversational replies")
    llm_timeout_seconds: float = Field(default=15.0, gt=0, description="Timeout for a single completion call")

    # Chain
    chain_id: int = Field(default=137, description="Target EVM chain ID")
    rpc_url: str = Field(default="https://polygon-rpc.com", description="JSON-RPC endpoint")
    explorer_url: str = Field(default="https://polygonscan.com", description="Block explorer base URL")
    rpc_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for a single RPC call")

    # Swap venue
    swap_venue: str = Field(default="uniswap_v3", description="On-chain venue backend (uniswap_v3 or uniswap_v4)")
    uniswap_v3_router: str = Field(default="0xE592427A0AEce92De3Edee1F18E0157C05861564")
    uniswap_v3_quoter: str = Field(default="0x61fFE014bA17989E743c5F6cB21bF9697530B21e")
    uniswap_v4_quoter: str = Field(default="", description="V4 Quoter address (unset until configured)")
    uniswap_v4_universal_router: str = Field(default="", description="UniversalRouter address used for V4 swaps")
    permit2_address: str = Field(default="0x000000000022D473030F116dDEE9F6B43aC78BA3")
    fee_tiers: List[int] = Field(default_factory=lambda: [500, 3000, 10000], description="Fee tiers probed in order")

    # Swap policy
    slippage_bps: int = Field(default=50, ge=0, le=5000, description="Slippage tolerance in basis points")
    quote_ttl_seconds: int = Field(default=30, ge=1, description="Lifetime of an issued quote")
    deadline_minutes: int = Field(default=20, ge=1, description="Swap deadline offset")
    confirmation_timeout_seconds: int = Field(default=300, ge=1, description="How long a quote awaits confirmation")
    session_idle_seconds: int = Field(default=1800, ge=1, description="Idle API sessions are dropped after this long")
    allow_estimated_execution: bool = Field(
        default=False,
        description="Allow executing against an indicative (static table) quote",
    )
    fallback_price_ratios: Dict[str, Dict[str, Decimal]] = Field(
        default_factory=_default_price_ratios,
        description="Static price ratios used when on-chain quoting is unavailable",
    )

    # Execution
    gas_multiplier: float = Field(default=1.2, ge=1.0, description="Safety margin on gas estimates")
    default_priority_fee_gwei: float = Field(default=30.0, description="Priority fee when fee history has none")
    min_gas_balance: Decimal = Field(default=Decimal("0.001"), description="Minimum native balance to trade")
    receipt_max_attempts: int = Field(default=30, ge=1, description="Receipt polling attempts")
    receipt_initial_backoff_seconds: float = Field(default=2.0, ge=0)
    receipt_backoff_factor: float = Field(default=1.5, ge=1.0)
    receipt_max_backoff_seconds: float = Field(default=15.0, ge=0)

    # Wallet custody
    wallet_store_dir: Path = Field(default=BASE_DIR / ".wallets", description="Encrypted wallet record directory")
    argon2_time_cost: int = Field(default=3, ge=1)
    argon2_memory_cost: int = Field(default=65536, ge=8, description="Argon2 memory cost in KiB")
    argon2_parallelism: int = Field(default=1, ge=1)

    @property
    def has_anthropic_key(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def has_zai_key(self) -> bool:
        return bool(self.z_api_key)

    @property
    def has_llm_key(self) -> bool:
        """Check if we have an API key for the configured LLM provider"""
        if self.llm_provider.lower() in ["anthropic", "claude"]:
            return self.has_anthropic_key
        elif self.llm_provider.lower() in ["zai", "z"]:
            return self.has_zai_key
        return False

    def explorer_tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


# Global settings instance
settings = Settings()
