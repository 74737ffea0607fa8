"""Tests for the exception hierarchy."""

import pytest

from db_cascade.exceptions import (
    CascadeError,
    ConfigurationError,
    StorageError,
    UsageError,
)


@pytest.mark.parametrize("cls", [ConfigurationError, StorageError, UsageError])
def test_hierarchy(cls) -> None:
    assert issubclass(cls, CascadeError)


def test_message_only() -> None:
    assert str(CascadeError("boom")) == "boom"


def test_context_in_message() -> None:
    error = ConfigurationError("bad key", relation="tags", table="post_tags")

    assert error.message == "bad key"
    assert str(error) == "bad key (relation: tags; table: post_tags)"
