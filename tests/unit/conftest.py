"""Common lightweight fixtures shared across unit test suites."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Generator

import pytest

from adapters.db.firestore.service_factory import FirestoreServiceFactory
from app_platform.config.auth import AuthConfig
from apps.merchant_auth.main import MerchantRuntime, build_runtime
from tests.utils.fakes import (
    FakeFirestoreClient,
    FakeIdentityProvider,
    FakeTransactionRunner,
    RecordingNotifier,
)


@pytest.fixture(autouse=True)
def deterministic_random_seed() -> Generator[None, None, None]:
    """Keep Python's RNG deterministic so flaky tests surface quickly."""

    state = random.getstate()
    random.seed(1337)
    yield
    random.setstate(state)


@dataclass
class FrozenClock:
    """Mutable millisecond clock handed to services as ``clock``."""

    epoch_ms: int = 1_700_000_000_000

    def __call__(self) -> int:
        return self.epoch_ms

    def now(self) -> int:
        return self.epoch_ms

    def advance(self, seconds: float) -> None:
        self.epoch_ms += int(seconds * 1000)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def auth_config() -> AuthConfig:
    """Configuration with cheap Argon2 parameters so hashing stays fast."""

    return AuthConfig(
        environment="test",
        use_firestore=False,
        pin_pepper="unit-pepper",
        argon2_memory_kib=64,
        argon2_time_cost=1,
        argon2_parallelism=1,
        app_origin="https://merchant.test",
        transaction_max_attempts=5,
    )


@pytest.fixture
def fs_client() -> FakeFirestoreClient:
    return FakeFirestoreClient()


@pytest.fixture
def tx_runner(fs_client: FakeFirestoreClient) -> FakeTransactionRunner:
    return FakeTransactionRunner(fs_client, max_attempts=5)


@pytest.fixture
def firestore_factory(fs_client, tx_runner, auth_config) -> FirestoreServiceFactory:
    return FirestoreServiceFactory(fs_client, config=auth_config, transaction_runner=tx_runner)


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def runtime(auth_config, firestore_factory, provider, notifier, clock) -> MerchantRuntime:
    """Fully wired services over the in-memory doubles."""

    return build_runtime(
        auth_config,
        firestore_factory=firestore_factory,
        auth_provider=provider,
        notifier=notifier,
        clock=clock,
    )
