"""
WomEmpower DAO TOML Configuration Loader

Loads every section of womempower.toml with environment variable
overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [governance] quorum_percent    → WOMEMPOWER_QUORUM_PERCENT
    [governance] proposal_duration → WOMEMPOWER_PROPOSAL_DURATION
    [governance] total_supply      → WOMEMPOWER_TOTAL_SUPPLY
    [governance] admin_authority   → WOMEMPOWER_ADMIN_AUTHORITY
    [storage] state_file           → WOMEMPOWER_STATE_FILE
    [logging] level                → WOMEMPOWER_LOG_LEVEL

The values here seed a fresh DAO only. Once a DAO exists its
parameters change solely through the admin-gated setters.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DAO_DEFAULT_ADMIN_AUTHORITY,
    DAO_DEFAULT_PROPOSAL_DURATION,
    DAO_DEFAULT_QUORUM_PERCENT,
    DAO_DEFAULT_TOTAL_SUPPLY,
    LOAN_ISSUANCE_RATE,
    LOAN_ISSUANCE_TERM,
)
from ..exceptions import ConfigurationError, DAOError
from ..governance.parameters import (
    GovernanceParameters,
    validate_proposal_duration,
    validate_quorum_percent,
    validate_total_supply,
)
from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "womempower.toml"
DEFAULT_STATE_FILE = "data/womempower-dao.json"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str) -> Optional[int]:
    v = os.environ.get(name)
    if not v:
        return None
    try:
        return int(v)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {v!r}") from e


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class GovernanceSectionConfig:
    """[governance] section."""
    quorum_percent: int = DAO_DEFAULT_QUORUM_PERCENT
    proposal_duration: int = DAO_DEFAULT_PROPOSAL_DURATION
    total_supply: int = DAO_DEFAULT_TOTAL_SUPPLY
    admin_authority: str = DAO_DEFAULT_ADMIN_AUTHORITY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceSectionConfig":
        return cls(
            quorum_percent=data.get("quorum_percent", DAO_DEFAULT_QUORUM_PERCENT),
            proposal_duration=data.get("proposal_duration", DAO_DEFAULT_PROPOSAL_DURATION),
            total_supply=data.get("total_supply", DAO_DEFAULT_TOTAL_SUPPLY),
            admin_authority=data.get("admin_authority", DAO_DEFAULT_ADMIN_AUTHORITY),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if (v := _env_int("WOMEMPOWER_QUORUM_PERCENT")) is not None:
            self.quorum_percent = v
        if (v := _env_int("WOMEMPOWER_PROPOSAL_DURATION")) is not None:
            self.proposal_duration = v
        if (v := _env_int("WOMEMPOWER_TOTAL_SUPPLY")) is not None:
            self.total_supply = v
        if v := os.environ.get("WOMEMPOWER_ADMIN_AUTHORITY"):
            self.admin_authority = v


@dataclass
class IssuanceConfig:
    """[issuance] section: terms handed to the loan sink on execution."""
    rate: int = LOAN_ISSUANCE_RATE
    term: int = LOAN_ISSUANCE_TERM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssuanceConfig":
        return cls(
            rate=data.get("rate", LOAN_ISSUANCE_RATE),
            term=data.get("term", LOAN_ISSUANCE_TERM),
        )


@dataclass
class StorageConfig:
    """[storage] section."""
    state_file: str = DEFAULT_STATE_FILE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        return cls(state_file=data.get("state_file", DEFAULT_STATE_FILE))

    def apply_env(self) -> None:
        if v := os.environ.get("WOMEMPOWER_STATE_FILE"):
            self.state_file = v


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("WOMEMPOWER_LOG_LEVEL"):
            self.level = v.upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class DAOConfig:
    """
    Unified DAO configuration.

    Loads every section of womempower.toml and applies environment
    variable overrides.
    """
    governance: GovernanceSectionConfig = field(default_factory=GovernanceSectionConfig)
    issuance: IssuanceConfig = field(default_factory=IssuanceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create DAOConfig from a parsed TOML dict."""
        return cls(
            governance=GovernanceSectionConfig.from_dict(data.get("governance", {})),
            issuance=IssuanceConfig.from_dict(data.get("issuance", {})),
            storage=StorageConfig.from_dict(data.get("storage", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults are used, with
        environment overrides applied. A file that is not valid TOML
        raises ConfigurationError.
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        logger.debug(f"Loaded configuration from {config_path}")
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.governance.apply_env()
        self.storage.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections with the same rules the
        parameter setters use.

        Raises:
            ConfigurationError: on invalid config
        """
        g = self.governance
        try:
            validate_quorum_percent(g.quorum_percent)
            validate_proposal_duration(g.proposal_duration)
            validate_total_supply(g.total_supply)
        except DAOError as e:
            raise ConfigurationError(f"[governance] {e}") from e
        if not isinstance(g.admin_authority, str) or not g.admin_authority:
            raise ConfigurationError("[governance] admin_authority is required")
        for name in ("rate", "term"):
            value = getattr(self.issuance, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigurationError(f"[issuance] {name} must be a non-negative integer")
        if not self.storage.state_file:
            raise ConfigurationError("[storage] state_file is required")
        if self.logging.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- conversion -------------------------------------------------------

    def to_parameters(self) -> GovernanceParameters:
        """Initial parameter record for a new DAO."""
        g = self.governance
        return GovernanceParameters(
            quorum_percent=g.quorum_percent,
            proposal_duration=g.proposal_duration,
            total_supply=g.total_supply,
            admin_authority=g.admin_authority,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "governance": {
                "quorum_percent": self.governance.quorum_percent,
                "proposal_duration": self.governance.proposal_duration,
                "total_supply": self.governance.total_supply,
                "admin_authority": self.governance.admin_authority,
            },
            "issuance": {
                "rate": self.issuance.rate,
                "term": self.issuance.term,
            },
            "storage": {
                "state_file": self.storage.state_file,
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load DAO configuration.

    Resolution order:
        1. Explicit *path* argument
        2. WOMEMPOWER_CONFIG env var
        3. ./womempower.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("WOMEMPOWER_CONFIG", DEFAULT_CONFIG_FILE)

    return DAOConfig.from_file(path)
