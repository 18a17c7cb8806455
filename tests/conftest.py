"""Shared test fixtures and sample data."""
from __future__ import annotations

from pathlib import Path

import pytest

from lending_client.config import (
    AppConfig,
    ChainConfig,
    ContractsConfig,
    MonitorConfig,
    NotificationsConfig,
    RiskSettings,
    TelegramConfig,
    TransactionsConfig,
)
from lending_client.models import PositionSnapshot, Token
from tests.factories import (
    COLLATERAL_MANAGER,
    LOAN_MANAGER,
    PRICE_ORACLE,
    SAMPLE_YAML,
    USER,
    FakeLedgerReader,
    RecordingBackend,
    collateral,
    loan,
)


# ---------------------------------------------------------------------------
# Token fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def eth() -> Token:
    return Token(
        address="0x4444444444444444444444444444444444444444",
        symbol="ETH",
        decimals=18,
        name="Ethereum",
        is_collateral=True,
    )


@pytest.fixture()
def btc() -> Token:
    return Token(
        address="0x5555555555555555555555555555555555555555",
        symbol="BTC",
        decimals=8,
        name="Bitcoin",
        is_collateral=True,
    )


@pytest.fixture()
def usdc() -> Token:
    return Token(
        address="0x6666666666666666666666666666666666666666",
        symbol="USDC",
        decimals=6,
        name="USD Coin",
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id=5042002,
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_contracts() -> ContractsConfig:
    return ContractsConfig(
        collateral_manager=COLLATERAL_MANAGER,
        loan_manager=LOAN_MANAGER,
        price_oracle=PRICE_ORACLE,
    )


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    sample_contracts: ContractsConfig,
    eth: Token,
    btc: Token,
    usdc: Token,
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        contracts=sample_contracts,
        tokens=(eth, btc, usdc),
        risk=RiskSettings(),
        transactions=TransactionsConfig(
            poll_interval_seconds=0,
            max_poll_attempts=30,
            settlement_delay_seconds=0,
        ),
        monitor=MonitorConfig(check_interval_minutes=5),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(enabled=True, bot_token="fake-token", chat_id="12345"),
        ),
    )


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Position fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def eth_position(eth: Token, usdc: Token) -> PositionSnapshot:
    """1 ETH @ $3200 with an 80% threshold against 2000 USDC of debt."""
    return PositionSnapshot(
        user=USER,
        collateral=(collateral(eth, 1, 3200),),
        debt=loan(usdc, 2000),
        close_factor_bps=5000,
        liquidation_bonus_bps=600,
    )


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_reader() -> FakeLedgerReader:
    return FakeLedgerReader()


@pytest.fixture()
def backend() -> RecordingBackend:
    return RecordingBackend()
