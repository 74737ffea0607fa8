"""Database factory.

Resolves a profile from ``db.toml`` and builds a ``Database`` for it.

Profile selection priority:
1. Explicit ``profile_name`` argument
2. ``DB_CASCADE_PROFILE`` env var
3. ``[cascade] default_profile`` in db.toml
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from db_cascade.config.loader import load_db_config
from db_cascade.config.models import DatabaseConfig, DatabaseProfile
from db_cascade.database import Database

logger = logging.getLogger(__name__)

PROFILE_ENV_VAR = "DB_CASCADE_PROFILE"


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted

    Example:
        >>> resolve_url(DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss"))
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_active_profile_name(config: DatabaseConfig) -> str:
    """Get active profile name from env var or config default.

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(PROFILE_ENV_VAR)
    if env_profile:
        return env_profile

    if config.default_profile:
        return config.default_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {PROFILE_ENV_VAR}=<name> or [cascade] default_profile in db.toml.\n"
        f"Available profiles: {', '.join(config.profiles) or '(none)'}"
    )


def get_profile(
    profile_name: str | None = None,
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get profile name and configuration.

    Raises:
        ProfileNotFoundError: If no profile configured or the name is unknown
        FileNotFoundError: If db.toml does not exist
    """
    config = load_db_config(config_path)
    if profile_name is None:
        profile_name = get_active_profile_name(config)

    if profile_name not in config.profiles:
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles) or '(none)'}"
        )

    return profile_name, config.profiles[profile_name]


def get_database(
    profile_name: str | None = None,
    config_path: Path | None = None,
) -> Database:
    """Build a ``Database`` for the selected profile.

    Example:
        >>> db = get_database("local")  # doctest: +SKIP
        >>> Record.bind(db)  # doctest: +SKIP
    """
    name, profile = get_profile(profile_name, config_path)
    logger.info("factory.database.create", extra={"profile": name})
    return Database.from_url(resolve_url(profile), echo=profile.echo)
