"""Tests for profile resolution and Database construction."""

from unittest.mock import patch

import pytest

from db_cascade.config.models import DatabaseConfig, DatabaseProfile
from db_cascade.database import Database
from db_cascade.factory import (
    PROFILE_ENV_VAR,
    ProfileNotFoundError,
    get_active_profile_name,
    get_database,
    get_profile,
    resolve_url,
)

CONFIG = """
[profiles.local]
url = "sqlite://"

[profiles.other]
url = "sqlite://"
echo = true

[cascade]
default_profile = "local"
"""


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv(PROFILE_ENV_VAR, raising=False)
    path = tmp_path / "db.toml"
    path.write_text(CONFIG)
    return path


class TestResolveUrl:
    def test_password_substituted_and_quoted(self) -> None:
        profile = DatabaseProfile(
            url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss/word"
        )
        assert resolve_url(profile) == "postgresql://u:p%40ss%2Fword@h/db"

    def test_no_placeholder(self) -> None:
        profile = DatabaseProfile(url="sqlite:///x.db", db_password="secret")
        assert resolve_url(profile) == "sqlite:///x.db"


class TestActiveProfile:
    def test_env_wins(self, monkeypatch) -> None:
        monkeypatch.setenv(PROFILE_ENV_VAR, "other")
        config = DatabaseConfig(default_profile="local")
        assert get_active_profile_name(config) == "other"

    def test_default_profile(self, monkeypatch) -> None:
        monkeypatch.delenv(PROFILE_ENV_VAR, raising=False)
        assert get_active_profile_name(DatabaseConfig(default_profile="local")) == "local"

    def test_none_configured(self, monkeypatch) -> None:
        monkeypatch.delenv(PROFILE_ENV_VAR, raising=False)
        with pytest.raises(ProfileNotFoundError, match=PROFILE_ENV_VAR):
            get_active_profile_name(DatabaseConfig())


class TestGetDatabase:
    def test_explicit_profile(self, config_path) -> None:
        name, profile = get_profile("other", config_path)
        assert name == "other"
        assert profile.echo is True

    def test_unknown_profile(self, config_path) -> None:
        with pytest.raises(ProfileNotFoundError, match="not found"):
            get_profile("missing", config_path)

    def test_builds_database(self, config_path) -> None:
        db = get_database(config_path=config_path)
        try:
            assert isinstance(db, Database)
            db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
            assert db.schema.get_table("t").primary_key == ["id"]
        finally:
            db.close()

    def test_echo_forwarded(self, config_path) -> None:
        with patch.object(Database, "from_url") as from_url:
            get_database("other", config_path)
        from_url.assert_called_once_with("sqlite://", echo=True)
