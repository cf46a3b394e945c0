"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Values read from the process environment (optionally populated from `.env`).

    Attributes:
        openai_model: Vision model used for classification.
        admin_user: Login name accepted by `/login`.
        admin_pass: Password accepted by `/login`.
        auth_disabled: Skip the session cookie gate entirely.
        cookie_secure: Mark the session cookie `Secure` (HTTPS deployments).
        analysis_rate_seconds: Default delay between classification calls in a job.
        log_level: Root logging level name.
    """

    openai_model: str = "gpt-4o"
    admin_user: str = ""
    admin_pass: str = ""
    auth_disabled: bool = False
    cookie_secure: bool = False
    analysis_rate_seconds: float = 1.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        rate_raw = os.getenv("ANALYSIS_RATE_SECONDS", "1.0")
        try:
            rate = float(rate_raw)
        except ValueError as exc:
            raise RuntimeError(f"ANALYSIS_RATE_SECONDS must be a number, got {rate_raw!r}") from exc

        return cls(
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            admin_user=os.getenv("ADMIN_USER", ""),
            admin_pass=os.getenv("ADMIN_PASS", ""),
            auth_disabled=_env_flag("AUTH_DISABLED"),
            cookie_secure=_env_flag("SESSION_COOKIE_SECURE"),
            analysis_rate_seconds=max(0.0, rate),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
