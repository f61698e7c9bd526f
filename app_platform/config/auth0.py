from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Auth0MgmtConfig:
    """Auth0 Management API credentials, budgets, and breaker thresholds."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    audience: Optional[str] = None
    base_url: Optional[str] = None
    connection: str = "Username-Password-Authentication"
    timeout_s: int = 5
    retries: int = 3
    backoff_base_ms: int = 50
    backoff_max_ms: int = 1000
    # Lightweight client-side rate limit to avoid bursts
    rps: float = 5.0
    burst: int = 10
    breaker_failure_threshold: int = 5
    breaker_window_s: int = 30
    breaker_half_open_after_s: int = 15

    @classmethod
    def from_env(cls) -> "Auth0MgmtConfig":
        return cls(
            client_id=os.getenv("AUTH0_MGMT_CLIENT_ID"),
            client_secret=os.getenv("AUTH0_MGMT_CLIENT_SECRET"),
            audience=os.getenv("AUTH0_MGMT_AUDIENCE"),
            base_url=os.getenv("AUTH0_MGMT_BASE_URL"),
            connection=os.getenv("AUTH0_MGMT_CONNECTION", "Username-Password-Authentication"),
            timeout_s=int(os.getenv("AUTH0_MGMT_TIMEOUT_S", "5")),
            retries=int(os.getenv("AUTH0_MGMT_RETRIES", "3")),
            backoff_base_ms=int(os.getenv("AUTH0_MGMT_BACKOFF_BASE_MS", "50")),
            backoff_max_ms=int(os.getenv("AUTH0_MGMT_BACKOFF_MAX_MS", "1000")),
            rps=float(os.getenv("AUTH0_MGMT_RPS", "5")),
            burst=int(os.getenv("AUTH0_MGMT_BURST", "10")),
            breaker_failure_threshold=int(os.getenv("AUTH0_MGMT_BREAKER_THRESHOLD", "5")),
            breaker_window_s=int(os.getenv("AUTH0_MGMT_BREAKER_WINDOW_S", "30")),
            breaker_half_open_after_s=int(os.getenv("AUTH0_MGMT_BREAKER_HALF_OPEN_S", "15")),
        )
