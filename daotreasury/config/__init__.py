"""
DAO Treasury Unified Configuration

Loads all sections of dao.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    GovernanceSectionConfig,
    TokenSectionConfig,
    TreasurySectionConfig,
    load_config,
    read_toml,
)

__all__ = [
    "DAOConfig",
    "GovernanceSectionConfig",
    "TokenSectionConfig",
    "TreasurySectionConfig",
    "load_config",
    "read_toml",
]
