"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_cascade.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from db_cascade.config.loader import load_db_config
from db_cascade.config.models import DatabaseConfig, DatabaseProfile

__all__ = ["load_db_config", "DatabaseConfig", "DatabaseProfile"]
