"""Runtime settings and logging setup for printpos."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

# Can be overridden via PRINTPOS_DATA_DIR environment variable
DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"
DEFAULT_MACHINE_ID = "A"
DEFAULT_ORDER_PREFIX = "JGL"
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _env_string(environ: Mapping[str, str], name: str, default: str) -> str:
    """Return a trimmed env value, treating empty strings as unset."""
    raw = environ.get(name)
    if raw is None:
        return default
    clean = raw.strip()
    return clean if clean else default


@dataclass
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    machine_id: str = DEFAULT_MACHINE_ID
    order_prefix: str = DEFAULT_ORDER_PREFIX
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            data_dir=Path(_env_string(env, "PRINTPOS_DATA_DIR", str(DEFAULT_DATA_DIR))),
            machine_id=_env_string(env, "PRINTPOS_MACHINE_ID", DEFAULT_MACHINE_ID),
            order_prefix=_env_string(env, "PRINTPOS_ORDER_PREFIX", DEFAULT_ORDER_PREFIX),
            log_level=_env_string(env, "PRINTPOS_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure root logging; unknown level names fall back to INFO."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
