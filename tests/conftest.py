"""Shared test fixtures that never touch the network"""

import random

import pytest
import structlog

from ithaca_automation.config.chain_specs import ITHACA, SEPOLIA
from ithaca_automation.config.settings import AutomationConfig
from ithaca_automation.core.chain_account import ChainAccount
from tests.utils.test_utils import (
    TEST_PRIVATE_KEY,
    FakeRunContext,
    SleepRecorder,
    create_mock_chain_client,
)


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep bound wallet/stage context from leaking between tests"""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def config() -> AutomationConfig:
    return AutomationConfig()


@pytest.fixture
def run_context() -> FakeRunContext:
    return FakeRunContext()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def ithaca_client():
    return create_mock_chain_client(ITHACA)


@pytest.fixture
def sepolia_client():
    return create_mock_chain_client(SEPOLIA)


@pytest.fixture
def ithaca_account() -> ChainAccount:
    return ChainAccount.from_private_key(TEST_PRIVATE_KEY, ITHACA)


@pytest.fixture
def sepolia_account() -> ChainAccount:
    return ChainAccount.from_private_key(TEST_PRIVATE_KEY, SEPOLIA)
