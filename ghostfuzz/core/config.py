"""Core configuration for the ghostfuzz engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ETHER = 10**18


def default_senders() -> list[str]:
    return [
        "0x0000000000000000000000000000000000010000",
        "0x0000000000000000000000000000000000020000",
        "0x0000000000000000000000000000000000030000",
        "0x00000000000000000000000000000000000a11ce",
        "0x0000000000000000000000000000000000000b0b",
    ]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GHOSTFUZZ_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "ghostfuzz"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Campaign ─────────────────────────────────────────────────────────
    fuzz_runs: int = Field(default=256, ge=1)
    fuzz_depth: int = Field(default=15, ge=1)
    fuzz_seed: int | None = None
    fuzz_shrink: bool = True
    fuzz_max_shrink_replays: int = Field(default=5_000, ge=0)
    fuzz_stop_on_first_failure: bool = True
    fuzz_senders: list[str] = Field(default_factory=default_senders)

    # ── Handler ──────────────────────────────────────────────────────────
    handler_initial_funds: int = 10_000_000 * ETHER
    handler_withdraw_source: Literal["actor", "handler"] = "actor"
    handler_enable_force_inject: bool = True
    handler_track_zero_amounts: bool = True
    handler_track_call_counts: bool = True

    # ── Reports ──────────────────────────────────────────────────────────
    report_format: Literal["table", "json"] = "table"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
