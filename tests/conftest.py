"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable (so no .env file is loaded) and
the environment defaults every test relies on, before settings are imported.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.pop("REDIS_URL", None)

os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-admin-key-123,test-admin-key-456")
os.environ.setdefault("APP_RATE_LIMIT_SWEEP_PROBABILITY", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryWindowStore
from app.core.app_factory import create_app
from app.core.auth import StaticSessionDirectory
from app.services.quota import QuotaTable
from app.services.rate_limit_service import RateDecisionEngine


@pytest.fixture
def clock() -> Mock:
    """Frozen clock (UNIX seconds); tests move time via ``clock.return_value``."""
    return Mock(return_value=1000.0)


@pytest.fixture
def local_store(clock: Mock) -> InMemoryWindowStore:
    return InMemoryWindowStore(clock=clock)


@pytest.fixture
def engine(local_store: InMemoryWindowStore, clock: Mock) -> RateDecisionEngine:
    return RateDecisionEngine(QuotaTable(), local_store, clock=clock)


@pytest.fixture
def session_directory() -> StaticSessionDirectory:
    return StaticSessionDirectory(
        tokens={
            "token-free": "user-free",
            "token-pro": "user-pro",
            "token-enterprise": "user-enterprise",
        },
        tiers={
            "user-free": "free",
            "user-pro": "pro",
            "user-enterprise": "enterprise",
        },
    )


@pytest.fixture
def app(engine: RateDecisionEngine, session_directory: StaticSessionDirectory) -> FastAPI:
    return create_app(rate_limiter=engine, session_directory=session_directory)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
