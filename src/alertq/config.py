"""Runner configuration.

Environment variables:
  - ALERTQ_BASE_URL (defaults to http://localhost:3000)
  - ALERTQ_EVAL_PATH (defaults to /api/v1/eval)
  - ALERTQ_TIMEOUT (seconds, defaults to 30)
  - ALERTQ_API_TOKEN (optional; sent as a bearer token)
  - ALERTQ_LOADING_DELAY (seconds before the Loading placeholder is shown,
    defaults to 0.2)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_EVAL_PATH = "/api/v1/eval"
DEFAULT_TIMEOUT = 30.0
DEFAULT_LOADING_DELAY = 0.2


@dataclass(frozen=True)
class RunnerSettings:
    """Settings for AlertingQueryRunner and its HTTP client."""

    base_url: str = DEFAULT_BASE_URL
    eval_path: str = DEFAULT_EVAL_PATH
    timeout: float = DEFAULT_TIMEOUT
    api_token: Optional[str] = None
    # Delay before the Loading placeholder is published; a response that
    # arrives sooner suppresses the placeholder.
    loading_delay: float = DEFAULT_LOADING_DELAY

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.loading_delay < 0:
            raise ValueError("loading_delay must not be negative")
        if not self.eval_path.startswith("/"):
            raise ValueError("eval_path must start with '/'")

    @classmethod
    def from_env(
        cls,
        *,
        dotenv_path: Optional[str] = None,
        base_url: Optional[str] = None,
        eval_path: Optional[str] = None,
        timeout: Optional[float] = None,
        api_token: Optional[str] = None,
        loading_delay: Optional[float] = None,
    ) -> "RunnerSettings":
        """Build settings from the environment; explicit arguments win.

        When ``dotenv_path`` is given, that file is loaded first without
        overriding variables already set.
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path=dotenv_path, override=False)

        return cls(
            base_url=base_url or os.getenv("ALERTQ_BASE_URL") or DEFAULT_BASE_URL,
            eval_path=eval_path or os.getenv("ALERTQ_EVAL_PATH") or DEFAULT_EVAL_PATH,
            timeout=timeout
            if timeout is not None
            else _env_float("ALERTQ_TIMEOUT", DEFAULT_TIMEOUT),
            api_token=api_token or os.getenv("ALERTQ_API_TOKEN") or None,
            loading_delay=loading_delay
            if loading_delay is not None
            else _env_float("ALERTQ_LOADING_DELAY", DEFAULT_LOADING_DELAY),
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
