"""Test environment configuration loading and credential files."""

import json
from pathlib import Path

import pytest

from config import Config
from models import ConfigurationError, VendorType

PROJECT_ROOT = Path(__file__).parent.parent

CONFIG_ATTRIBUTES = [
    "RELAY_URL",
    "USE_RELAY",
    "REQUEST_TIMEOUT",
    "TEST_MODE",
    "OUTPUT_DIR",
    "CREDENTIALS_FILE",
    "ORDER_NO_PREFIX",
    "LOG_LEVEL",
    "CURRENT_ENVIRONMENT",
]

OVERRIDE_VARIABLES = [
    "EINVOICE_ENV",
    "EINVOICE_RELAY_URL",
    "EINVOICE_USE_RELAY",
    "EINVOICE_REQUEST_TIMEOUT",
    "EINVOICE_TEST_MODE",
    "OUTPUT_DIR",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def restore_config(monkeypatch):
    """Keep Config class attributes and override variables isolated per test."""
    for name in OVERRIDE_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    saved = {name: getattr(Config, name) for name in CONFIG_ATTRIBUTES}
    yield
    for name, value in saved.items():
        setattr(Config, name, value)


@pytest.fixture
def environments_file(tmp_path):
    path = tmp_path / "environments.json"
    path.write_text(
        json.dumps(
            {
                "environments": {
                    "local": {
                        "description": "Local relay",
                        "relay_url": "http://localhost:9000/kick.php",
                        "use_relay": True,
                        "test_mode": True,
                        "output_dir": str(tmp_path / "out"),
                    },
                    "production": {
                        "description": "Direct calls",
                        "use_relay": False,
                        "request_timeout": 30,
                        "test_mode": False,
                        "credentials_file": "credentials.production.json",
                    },
                },
                "default": "local",
            }
        ),
        encoding="utf-8",
    )
    return path


def test_load_default_environment(environments_file, tmp_path):
    """Test loading the file's default environment."""
    env_name = Config.load_environment(config_file=str(environments_file))

    assert env_name == "local"
    assert Config.CURRENT_ENVIRONMENT == "local"
    assert Config.RELAY_URL == "http://localhost:9000/kick.php"
    assert Config.USE_RELAY is True
    assert Config.OUTPUT_DIR == tmp_path / "out"


def test_load_specific_environment(environments_file):
    """Test loading a named environment."""
    Config.load_environment("production", config_file=str(environments_file))

    assert Config.USE_RELAY is False
    assert Config.TEST_MODE is False
    assert Config.REQUEST_TIMEOUT == 30
    assert Config.CREDENTIALS_FILE == Path("credentials.production.json")


def test_environment_variable_selects_environment(environments_file, monkeypatch):
    """Test EINVOICE_ENV picks the environment when no name is passed."""
    monkeypatch.setenv("EINVOICE_ENV", "production")

    assert Config.load_environment(config_file=str(environments_file)) == "production"


def test_environment_variable_overrides(environments_file, monkeypatch):
    """Test EINVOICE_* variables win over the file."""
    monkeypatch.setenv("EINVOICE_RELAY_URL", "https://relay.example.com/kick.php")
    monkeypatch.setenv("EINVOICE_USE_RELAY", "false")
    monkeypatch.setenv("EINVOICE_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    Config.load_environment("local", config_file=str(environments_file))

    assert Config.RELAY_URL == "https://relay.example.com/kick.php"
    assert Config.USE_RELAY is False
    assert Config.REQUEST_TIMEOUT == 2.5
    assert Config.LOG_LEVEL == "DEBUG"


def test_invalid_environment(environments_file):
    """Test loading non-existent environment raises error."""
    with pytest.raises(ValueError, match="not found"):
        Config.load_environment("nonexistent_environment_xyz", config_file=str(environments_file))


def test_missing_environment_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load_environment(config_file=str(tmp_path / "missing.json"))


def test_list_environments(environments_file):
    """Test listing available environments."""
    envs = Config.list_environments(str(environments_file))

    assert set(envs) == {"local", "production"}
    assert envs["local"]["is_default"] is True
    assert envs["production"]["is_default"] is False
    assert envs["local"]["description"] == "Local relay"


def test_list_environments_without_file(tmp_path):
    assert Config.list_environments(str(tmp_path / "missing.json")) == {}


def test_load_platform_config_nested(tmp_path):
    """Test the credentials file may nest everything under platform_config."""
    path = tmp_path / "credentials.json"
    path.write_text(
        json.dumps(
            {
                "platform_config": {
                    "provider": "ECPay",
                    "test": {
                        "merchant_id": "2000132",
                        "hash_key": "ejCk326UnaZWKisg",
                        "hash_iv": "q9jcZX8Ib9LM8wYk",
                    },
                    "production": {
                        "merchant_id": "YOUR_MERCHANT_ID",
                        "hash_key": "YOUR_HASH_KEY",
                        "hash_iv": "YOUR_HASH_IV",
                    },
                }
            }
        ),
        encoding="utf-8",
    )

    platform_config = Config.load_platform_config(path)

    assert platform_config.provider == VendorType.ECPAY
    assert platform_config.test["merchant_id"] == "2000132"
    assert platform_config.production is None


def test_load_platform_config_unknown_provider(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({"provider": "nope"}), encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load_platform_config(path)


def test_load_platform_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load_platform_config(tmp_path / "credentials.json")


def test_example_files_are_valid():
    """Test the shipped example files load."""
    envs = Config.list_environments(str(PROJECT_ROOT / "environments.example.json"))
    platform_config = Config.load_platform_config(PROJECT_ROOT / "credentials.example.json")

    assert "local" in envs
    assert platform_config.provider == VendorType.EZPAY
    assert not platform_config.has_credentials("test")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
