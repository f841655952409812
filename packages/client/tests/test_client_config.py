"""Tests for client configuration loading."""

import pytest
import yaml
from pydantic import ValidationError

from acme_client.config import ClientConfig, RetryConfig, load_config


def test_load_config_from_yaml(tmp_path):
    config_data = {
        "base_url": "https://acme.example.com",
        "timeout_seconds": 5,
        "retries": {"attempts": 5, "backoff_seconds": [0.1, 0.2]},
        "logging": {"level": "debug", "include_body": True},
    }
    path = tmp_path / "client.yaml"
    path.write_text(yaml.dump(config_data))

    cfg = load_config(path)
    assert cfg.base_url == "https://acme.example.com"
    assert cfg.timeout_seconds == 5
    assert cfg.retries.attempts == 5
    assert cfg.retries.backoff_seconds == [0.1, 0.2]
    assert cfg.logging.level == "debug"
    assert cfg.logging.include_body is True


def test_load_config_defaults():
    cfg = ClientConfig()
    assert cfg.base_url == "http://localhost:8000"
    assert cfg.verify_tls is True
    assert cfg.retries.attempts == 3
    assert cfg.retries.backoff_seconds == [0.25, 0.8, 2.0]
    assert cfg.logging.timing is True


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == ClientConfig()


def test_load_config_file_not_found():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/path.yaml")


def test_token_from_environment(monkeypatch):
    monkeypatch.setenv("ACME_TEST_TOKEN", "secret-token")
    cfg = ClientConfig(token_env="ACME_TEST_TOKEN")
    assert cfg.token == "secret-token"


def test_backoff_schedule_repeats_last_delay():
    retries = RetryConfig(backoff_seconds=[0.25, 0.8, 2.0])
    assert [retries.delay_for(i) for i in range(5)] == [0.25, 0.8, 2.0, 2.0, 2.0]


def test_invalid_retry_settings():
    with pytest.raises(ValidationError):
        RetryConfig(attempts=0)
    with pytest.raises(ValidationError):
        RetryConfig(backoff_seconds=[])
