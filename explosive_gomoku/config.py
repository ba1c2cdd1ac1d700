"""Runtime settings read from the environment (and a local .env file)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from explosive_gomoku.strategy import StrategyKind, parse_strategy

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:5174"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    strategy: StrategyKind = StrategyKind.RANDOM
    think_delay: float = 0.6  # seconds an automated seat "thinks" before moving
    explosion_display: float = 0.5
    swap_notice_display: float = 3.0
    oracle_url: str | None = None
    oracle_timeout: float = 10.0
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))


def load_settings() -> Settings:
    load_dotenv()
    cors_origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return Settings(
        strategy=parse_strategy(os.getenv("GOMOKU_STRATEGY", StrategyKind.RANDOM)),
        think_delay=_float_env("GOMOKU_THINK_DELAY", 0.6),
        explosion_display=_float_env("GOMOKU_EXPLOSION_DISPLAY", 0.5),
        swap_notice_display=_float_env("GOMOKU_SWAP_NOTICE_DISPLAY", 3.0),
        oracle_url=os.getenv("GOMOKU_ORACLE_URL") or None,
        oracle_timeout=_float_env("GOMOKU_ORACLE_TIMEOUT", 10.0),
        log_level=os.getenv("GOMOKU_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("GOMOKU_HOST", "0.0.0.0"),
        port=int(_float_env("GOMOKU_PORT", 8000)),
        cors_origins=[o.strip() for o in cors_origins.split(",")],
    )
