"""Configuration settings for e-invoice submission."""

import json
import os
from pathlib import Path


class Config:
    """Application configuration settings."""

    # Gateway
    RELAY_URL = "http://localhost:8080/api/kick.php"
    USE_RELAY = True
    REQUEST_TIMEOUT = 10  # seconds
    TEST_MODE = True

    # Files
    OUTPUT_DIR = Path("output")
    CREDENTIALS_FILE = Path("credentials.json")

    # Invoices
    ORDER_NO_PREFIX = "LAZYINVOICE888"

    # Export
    CSV_FORMAT = "normalized"  # or "denormalized"
    DATE_FORMAT = "%Y-%m-%d"

    # Logging
    LOG_LEVEL = "INFO"
    LOG_FILE = "einvoice.log"

    # Environment tracking
    CURRENT_ENVIRONMENT = None

    @classmethod
    def load_environment(
        cls, env_name: str = None, config_file: str = "environments.json"
    ):
        """
        Load configuration from environments.json file.

        Args:
            env_name: Name of the environment to load (e.g., 'local', 'staging').
                     If None, uses EINVOICE_ENV or the default from the config file.
            config_file: Path to the environments configuration file.

        Raises:
            FileNotFoundError: If environments.json doesn't exist.
            ValueError: If specified environment doesn't exist in config.
        """
        config_path = Path(config_file)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Environment configuration file not found: {config_file}\n"
                "Copy environments.example.json to environments.json and edit it."
            )

        with open(config_path, encoding="utf-8") as f:
            env_config = json.load(f)

        # Priority: argument, then EINVOICE_ENV, then the file's default
        if env_name is None:
            env_name = os.getenv("EINVOICE_ENV", env_config.get("default"))

        if env_name not in env_config["environments"]:
            available = ", ".join(env_config["environments"].keys())
            raise ValueError(
                f"Environment '{env_name}' not found in {config_file}.\n"
                f"Available environments: {available}"
            )

        env_settings = env_config["environments"][env_name]

        cls.RELAY_URL = env_settings.get("relay_url", cls.RELAY_URL)
        cls.USE_RELAY = env_settings.get("use_relay", cls.USE_RELAY)
        cls.REQUEST_TIMEOUT = env_settings.get("request_timeout", cls.REQUEST_TIMEOUT)
        cls.TEST_MODE = env_settings.get("test_mode", cls.TEST_MODE)
        cls.OUTPUT_DIR = Path(env_settings.get("output_dir", cls.OUTPUT_DIR))
        cls.CREDENTIALS_FILE = Path(
            env_settings.get("credentials_file", cls.CREDENTIALS_FILE)
        )
        cls.ORDER_NO_PREFIX = env_settings.get("order_no_prefix", cls.ORDER_NO_PREFIX)
        cls.CURRENT_ENVIRONMENT = env_name

        # Still allow environment variable overrides
        cls._apply_env_overrides()

        return env_name

    @classmethod
    def _apply_env_overrides(cls):
        """Apply environment variable overrides after loading base config."""
        if os.getenv("EINVOICE_RELAY_URL"):
            cls.RELAY_URL = os.getenv("EINVOICE_RELAY_URL")
        if os.getenv("EINVOICE_USE_RELAY"):
            cls.USE_RELAY = os.getenv("EINVOICE_USE_RELAY").lower() == "true"
        if os.getenv("EINVOICE_REQUEST_TIMEOUT"):
            cls.REQUEST_TIMEOUT = float(os.getenv("EINVOICE_REQUEST_TIMEOUT"))
        if os.getenv("EINVOICE_TEST_MODE"):
            cls.TEST_MODE = os.getenv("EINVOICE_TEST_MODE").lower() == "true"
        if os.getenv("OUTPUT_DIR"):
            cls.OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR"))
        if os.getenv("LOG_LEVEL"):
            cls.LOG_LEVEL = os.getenv("LOG_LEVEL")

    @classmethod
    def list_environments(cls, config_file: str = "environments.json") -> dict:
        """
        List all available environments from config file.

        Args:
            config_file: Path to the environments configuration file.

        Returns:
            Dict mapping environment names to their descriptions and settings.
        """
        config_path = Path(config_file)

        if not config_path.exists():
            return {}

        with open(config_path, encoding="utf-8") as f:
            env_config = json.load(f)

        return {
            name: {
                "description": settings.get("description", "No description"),
                "relay_url": settings.get("relay_url", cls.RELAY_URL),
                "is_default": name == env_config.get("default"),
            }
            for name, settings in env_config["environments"].items()
        }

    @classmethod
    def load_platform_config(cls, path=None):
        """
        Load the vendor selection and credentials.

        The file holds ``{"provider": ..., "test": {...}, "production": {...}}``,
        optionally nested under ``platform_config``.

        Args:
            path: Credentials file (defaults to CREDENTIALS_FILE)

        Returns:
            PlatformConfig instance

        Raises:
            FileNotFoundError: If the credentials file doesn't exist.
            ConfigurationError: If the file is not a valid platform configuration.
        """
        from pydantic import ValidationError

        from models.credentials import PlatformConfig
        from models.errors import ConfigurationError

        config_path = Path(path or cls.CREDENTIALS_FILE)
        if not config_path.exists():
            raise FileNotFoundError(f"Credentials file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, dict) and "platform_config" in data:
            data = data["platform_config"]

        try:
            return PlatformConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid platform config in {config_path}: {e}") from e
