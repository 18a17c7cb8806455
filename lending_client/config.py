"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from eth_utils import is_address

from .models import Token

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int = 5042002
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class ContractsConfig:
    collateral_manager: str = ""
    loan_manager: str = ""
    price_oracle: str = ""


@dataclass(frozen=True)
class RiskSettings:
    default_liquidation_threshold: float = 0.75
    safe_withdraw_target: float = 1.2
    # tokenConfig stores whole percent; multiply by this to get bps
    risk_config_scale_bps: int = 100


@dataclass(frozen=True)
class TransactionsConfig:
    poll_interval_seconds: float = 1.0
    max_poll_attempts: int = 30
    settlement_delay_seconds: float = 2.0
    wallet_receipt_timeout_seconds: float = 120.0
    repay_all_buffer_bps: int = 50
    default_loan_duration_days: int = 30


@dataclass(frozen=True)
class MonitorConfig:
    check_interval_minutes: int = 5
    watch_addresses: tuple[str, ...] = ()


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    tokens: tuple[Token, ...] = ()
    risk: RiskSettings = field(default_factory=RiskSettings)
    transactions: TransactionsConfig = field(default_factory=TransactionsConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def token(self, symbol_or_address: str) -> Token:
        """Look up a configured token by symbol or address (case-insensitive)."""
        key = symbol_or_address.lower()
        for token in self.tokens:
            if token.symbol.lower() == key or token.address.lower() == key:
                return token
        raise KeyError(f"Unknown token: {symbol_or_address}")

    @property
    def collateral_tokens(self) -> tuple[Token, ...]:
        return tuple(t for t in self.tokens if t.is_collateral)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        chain_id=int(raw.get("chain_id", 5042002)),
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    return ContractsConfig(
        collateral_manager=raw.get("collateral_manager", ""),
        loan_manager=raw.get("loan_manager", ""),
        price_oracle=raw.get("price_oracle", ""),
    )


def _build_tokens(raw: list[dict[str, Any]]) -> tuple[Token, ...]:
    tokens: list[Token] = []
    for t in raw:
        tokens.append(
            Token(
                address=t.get("address", ""),
                symbol=t.get("symbol", ""),
                decimals=int(t.get("decimals", 18)),
                name=t.get("name", ""),
                is_collateral=bool(t.get("collateral", False)),
                is_native=bool(t.get("native", False)),
            )
        )
    return tuple(tokens)


def _build_risk(raw: dict[str, Any]) -> RiskSettings:
    return RiskSettings(
        default_liquidation_threshold=float(raw.get("default_liquidation_threshold", 0.75)),
        safe_withdraw_target=float(raw.get("safe_withdraw_target", 1.2)),
        risk_config_scale_bps=int(raw.get("risk_config_scale_bps", 100)),
    )


def _build_transactions(raw: dict[str, Any]) -> TransactionsConfig:
    return TransactionsConfig(
        poll_interval_seconds=float(raw.get("poll_interval_seconds", 1.0)),
        max_poll_attempts=int(raw.get("max_poll_attempts", 30)),
        settlement_delay_seconds=float(raw.get("settlement_delay_seconds", 2.0)),
        wallet_receipt_timeout_seconds=float(
            raw.get("wallet_receipt_timeout_seconds", 120.0)
        ),
        repay_all_buffer_bps=int(raw.get("repay_all_buffer_bps", 50)),
        default_loan_duration_days=int(raw.get("default_loan_duration_days", 30)),
    )


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        check_interval_minutes=int(raw.get("check_interval_minutes", 5)),
        watch_addresses=tuple(raw.get("watch_addresses", [])),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            bot_token=tg.get("bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        contracts=_build_contracts(raw.get("contracts", {})),
        tokens=_build_tokens(raw.get("tokens", [])),
        risk=_build_risk(raw.get("risk", {})),
        transactions=_build_transactions(raw.get("transactions", {})),
        monitor=_build_monitor(raw.get("monitor", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")

    for name in ("collateral_manager", "loan_manager", "price_oracle"):
        address = getattr(cfg.contracts, name)
        if not is_address(address):
            raise ValueError(f"Contract '{name}' has an invalid address: '{address}'")

    if not cfg.tokens:
        raise ValueError("At least one token must be configured")

    seen: set[str] = set()
    for token in cfg.tokens:
        if not token.symbol:
            raise ValueError(f"Token at {token.address} has no symbol")
        if token.symbol.upper() in seen:
            raise ValueError(f"Duplicate token symbol '{token.symbol}'")
        seen.add(token.symbol.upper())
        if not is_address(token.address):
            raise ValueError(f"Token '{token.symbol}' has an invalid address")

    tx = cfg.transactions
    if tx.poll_interval_seconds < 0 or tx.max_poll_attempts <= 0:
        raise ValueError("Receipt polling needs a non-negative interval and positive attempts")
    if not 0 < cfg.risk.default_liquidation_threshold <= 1:
        raise ValueError("default_liquidation_threshold must be in (0, 1]")
