# MDBMerge - Configuration
# ========================
"""
Runtime configuration for the merge engine.

Values come from MDBMERGE_* environment variables, optionally provided
through a project .env file, and fall back to the defaults below.
"""

import os
import sys
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "MDBMerge"
DEFAULT_DB_FILENAME = "converted.duckdb"

# Ledger written on every successful import; also the default marker table
LEDGER_TABLE = "_mdbmerge_sources"


def get_app_data_dir(app_name: str = APP_NAME) -> Path:
    """Return the per-user application data directory for this platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / app_name
    if sys.platform.startswith("win"):
        roaming = os.getenv("APPDATA")
        if roaming and roaming.strip():
            return Path(roaming) / app_name
        return Path.home() / "AppData" / "Roaming" / app_name
    return Path.home() / ".local" / "share" / app_name


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MergeConfig:
    """Configuration for imports, removal and reporting."""
    db_path: str = ""
    query_catalog_path: Optional[str] = None

    # Write settings
    batch_size: int = 500
    max_workers: Optional[int] = None  # None = available CPUs

    # Identity resolution
    config_table: str = "tblConfig"
    identity_field: str = "HFRCode"

    # Provenance columns appended to every destination row
    identity_column: str = "hfr_code"
    filename_column: str = "source_mdb"

    # Duplicate guard
    marker_table: str = LEDGER_TABLE

    # Removal runs every delete in one transaction unless disabled
    atomic_removal: bool = True

    def __post_init__(self):
        if not self.db_path:
            self.db_path = str(get_app_data_dir() / DEFAULT_DB_FILENAME)
        if self.batch_size <= 0:
            raise ConfigError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigError(f"max_workers must be positive, got {self.max_workers}")
        if self.identity_column.lower() == self.filename_column.lower():
            raise ConfigError("identity_column and filename_column must differ")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "MergeConfig":
        """
        Create config from environment variables.

        Args:
            env_file: Optional .env file to load first. Defaults to the
                .env in the current working directory, if any.

        Returns:
            MergeConfig populated from MDBMERGE_* variables
        """
        load_dotenv(env_file or Path.cwd() / ".env")

        config = cls(
            db_path=os.getenv("MDBMERGE_DB_PATH", ""),
            query_catalog_path=os.getenv("MDBMERGE_QUERY_CATALOG") or None,
            batch_size=_env_int("MDBMERGE_BATCH_SIZE", 500),
            max_workers=_env_int("MDBMERGE_MAX_WORKERS", None),
            config_table=os.getenv("MDBMERGE_CONFIG_TABLE", "tblConfig"),
            identity_field=os.getenv("MDBMERGE_IDENTITY_FIELD", "HFRCode"),
            marker_table=os.getenv("MDBMERGE_MARKER_TABLE", LEDGER_TABLE),
            atomic_removal=_env_bool("MDBMERGE_ATOMIC_REMOVAL", True),
        )
        logger.debug(f"Loaded configuration: db_path={config.db_path}")
        return config
