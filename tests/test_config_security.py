from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="change-me")


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="prod", secret_key="change-me-in-production")


def test_custom_secret_key_allowed_in_production() -> None:
    settings = Settings(_env_file=None, app_env="production", secret_key="super-secure-value")
    assert settings.secret_key == "super-secure-value"


def test_unknown_default_timezone_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_timezone="Mars/Olympus_Mons")


def test_booking_defaults_follow_studio_hours() -> None:
    settings = Settings(_env_file=None)
    assert settings.default_timezone == "Asia/Seoul"
    assert settings.booking_next_month_open_day == 25
    assert (settings.schedule_first_start_hour, settings.schedule_last_start_hour) == (9, 20)


def test_last_start_hour_before_first_start_hour_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, schedule_first_start_hour=12, schedule_last_start_hour=10)
