"""Tests for Settings validation."""

from pydantic import ValidationError
import pytest

from skillswap.core.config import Settings


def test_defaults():
    config = Settings(_env_file=None)

    assert config.booking_lock_backend == "local"
    assert config.proposal_grace_minutes == 5
    assert config.max_offer_slots == 5
    assert config.max_group_capacity == 50
    assert config.list_limit == 200
    assert config.decline_pending_on_full_slot is False


def test_lock_backend_is_normalized():
    assert Settings(booking_lock_backend=" Redis ").booking_lock_backend == "redis"


def test_unknown_lock_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(booking_lock_backend="zookeeper")


def test_log_level_is_normalized():
    assert Settings(log_level="debug").log_level == "DEBUG"


def test_unknown_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(log_level="chatty")


def test_env_override(monkeypatch):
    monkeypatch.setenv("PROPOSAL_GRACE_MINUTES", "15")
    assert Settings().proposal_grace_minutes == 15
