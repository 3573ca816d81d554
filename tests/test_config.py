import logging

import pytest

from core.config import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT_S, PingerConfig, load_config


def test_defaults_when_env_is_empty():
    config = load_config({})
    assert config == PingerConfig()
    assert config.endpoint == DEFAULT_ENDPOINT
    assert config.timeout_s == DEFAULT_TIMEOUT_S == 30.0
    assert config.attach_frequency is False
    assert config.log_tasks is False
    assert config.run_on_startup is True
    assert config.timezone is None


def test_empty_endpoint_falls_back_to_default():
    assert load_config({"API_ENDPOINT": "   "}).endpoint == DEFAULT_ENDPOINT


def test_env_overrides():
    config = load_config(
        {
            "API_ENDPOINT": "https://api.example.com/endpoint",
            "API_TIMEOUT_SECONDS": "5.5",
            "ATTACH_FREQUENCY": "yes",
            "LOG_TASKS": "1",
            "RUN_ON_STARTUP": "off",
            "SCHEDULER_ENABLED": "false",
            "SCHEDULE": "15 * * * *",
            "PINGER_TZ": "Europe/Paris",
        }
    )
    assert config.endpoint == "https://api.example.com/endpoint"
    assert config.timeout_s == 5.5
    assert config.attach_frequency is True
    assert config.log_tasks is True
    assert config.run_on_startup is False
    assert config.scheduler_enabled is False
    assert config.schedule == "15 * * * *"
    assert config.timezone == "Europe/Paris"


@pytest.mark.parametrize("raw", ["abc", "-3", "0", ""])
def test_bad_timeout_falls_back(raw):
    assert load_config({"API_TIMEOUT_SECONDS": raw}).timeout_s == DEFAULT_TIMEOUT_S


def test_unknown_bool_falls_back():
    assert load_config({"ATTACH_FREQUENCY": "maybe"}).attach_frequency is False
    assert load_config({"RUN_ON_STARTUP": "maybe"}).run_on_startup is True


def test_invalid_schedule_raises():
    with pytest.raises(ValueError):
        load_config({"SCHEDULE": "*/30 * * * *"})


def test_config_is_frozen():
    config = load_config({})
    with pytest.raises(AttributeError):
        config.endpoint = "https://elsewhere"


def test_known_timezone_is_kept():
    assert load_config({"PINGER_TZ": "Europe/Paris"}).timezone == "Europe/Paris"


@pytest.mark.parametrize("raw", ["Not/AZone", "../etc/passwd"])
def test_unknown_timezone_falls_back_to_local(raw, caplog):
    with caplog.at_level(logging.WARNING, logger="pinger.config"):
        config = load_config({"PINGER_TZ": raw})

    assert config.timezone is None
    assert "unknown time zone" in caplog.text
