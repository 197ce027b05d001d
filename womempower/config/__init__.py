"""
WomEmpower DAO Configuration

Loads womempower.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    GovernanceSectionConfig,
    IssuanceConfig,
    LoggingConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "DAOConfig",
    "GovernanceSectionConfig",
    "IssuanceConfig",
    "LoggingConfig",
    "StorageConfig",
    "load_config",
]
