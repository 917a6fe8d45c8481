"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so no developer .env file leaks into the tests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LEDGER_PROVIDER", "http://ledger.test:8545")
os.environ.setdefault("LEDGER_FAUCET_ADDRESS", "0x" + "f" * 40)
os.environ.setdefault("HCAPTCHA_SECRET", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from tests.fakes import FakeClock, FakeLedger


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()
