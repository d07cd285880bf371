"""
Shared pytest fixtures for harness and live backoffice tests
"""
import os

# Load .env file before anything reads the environment
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), '.env'))

import pytest
from typing import AsyncGenerator

from survey_harness import ApiHarness, HarnessConfig
from survey_harness.utils.logger import logger
from tests.config import E2ETestConfig
from tests.fake_backoffice import ADMIN_PASSWORD, ADMIN_USERNAME, FakeBackoffice

FAKE_BASE_URL = "http://backoffice.test"


# Register custom markers
def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow tests (export polling, large bulk creates)")
    config.addinivalue_line("markers", "live: Tests that talk to a real survey backoffice")


def pytest_collection_modifyitems(config, items):
    """Live suites only run when RUN_LIVE_TESTS=1 and admin credentials are configured."""
    live_config = E2ETestConfig()
    if live_config.live_ready:
        return
    skip_live = pytest.mark.skip(reason="live backoffice not configured (set RUN_LIVE_TESTS=1, TEST_API_URL, ADMIN_USERNAME, ADMIN_PASSWORD)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ----------------------------------------------------------------------------
# Offline fixtures: harness wired to the in-memory backoffice
# ----------------------------------------------------------------------------

@pytest.fixture
def backoffice() -> FakeBackoffice:
    return FakeBackoffice()


@pytest.fixture
def fake_config() -> HarnessConfig:
    return HarnessConfig(
        base_url=FAKE_BASE_URL,
        timeout_ms=5_000,
        admin_username=ADMIN_USERNAME,
        admin_password=ADMIN_PASSWORD,
        faker_seed=1234,
    )


@pytest.fixture
async def anon_harness(backoffice: FakeBackoffice, fake_config: HarnessConfig) -> AsyncGenerator[ApiHarness, None]:
    """Unauthenticated harness against the fake backoffice"""
    async with ApiHarness(fake_config, transport=backoffice.transport()) as harness:
        yield harness


@pytest.fixture
async def harness(backoffice: FakeBackoffice, fake_config: HarnessConfig) -> AsyncGenerator[ApiHarness, None]:
    """Authenticated harness built with a token issued by the fake backoffice"""
    token = backoffice.issue_token()
    async with ApiHarness(fake_config.with_token(token), transport=backoffice.transport()) as harness:
        yield harness


# ----------------------------------------------------------------------------
# Live fixtures: real backoffice, two-step login then token-bound harness
# ----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def test_config() -> E2ETestConfig:
    return E2ETestConfig()


@pytest.fixture(scope="session")
def live_config(test_config: E2ETestConfig) -> HarnessConfig:
    return HarnessConfig.from_env(
        base_url=test_config.base_url,
        timeout_ms=test_config.request_timeout_ms,
        admin_username=test_config.admin_username,
        admin_password=test_config.admin_password,
    ).validate()


@pytest.fixture
async def live_anon(live_config: HarnessConfig) -> AsyncGenerator[ApiHarness, None]:
    async with ApiHarness(live_config) as harness:
        yield harness


@pytest.fixture
async def auth_token(live_anon: ApiHarness) -> str:
    """Admin bearer token for the live backoffice"""
    token = await live_anon.login()
    logger.debug(f"Obtained admin token for {live_anon.config.base_url}")
    return token


@pytest.fixture
async def api(live_config: HarnessConfig, auth_token: str) -> AsyncGenerator[ApiHarness, None]:
    """
    Authenticated harness for live tests.

    Everything it created is deleted afterwards; deletes that fail are
    logged by the harness and otherwise ignored.
    """
    async with ApiHarness(live_config.with_token(auth_token)) as harness:
        yield harness
        failures = await harness.teardown()
        if failures:
            print(f"\n⚠️  Cleanup left {len(failures)} resource(s): {[(k.value, i) for k, i, _ in failures]}")
        harness.clear_test_data()
