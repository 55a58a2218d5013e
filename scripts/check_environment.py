#!/usr/bin/env python3
"""Check environment configuration and vendor credentials."""

import sys
from pathlib import Path

# Add parent directory to path to import config
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config  # noqa: E402
from models import ConfigurationError, Mode  # noqa: E402
from models.vendor import VENDOR_DISPLAY_NAMES  # noqa: E402


def list_environments():
    """List all available environments."""
    envs = Config.list_environments()

    if not envs:
        print("No environments.json file found.")
        print("\nCopy environments.example.json to environments.json and edit it:")
        print('{\n  "environments": {\n    "local": {')
        print('      "description": "Description",')
        print('      "relay_url": "http://localhost:8080/api/kick.php",')
        print('      "use_relay": true,')
        print('      "credentials_file": "credentials.json"')
        print('    }\n  },\n  "default": "local"\n}')
        return

    print("Available Environments:")
    print("=" * 60)

    for env_name, settings in envs.items():
        default_marker = " (default)" if settings["is_default"] else ""
        print(f"\n{env_name}{default_marker}")
        print(f"  Description: {settings['description']}")
        print(f"  Relay URL:   {settings['relay_url']}")


def check_credentials() -> bool:
    """Report which credential sets in CREDENTIALS_FILE are usable."""
    try:
        platform_config = Config.load_platform_config()
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"\nCredentials: {e}")
        return False

    vendor = VENDOR_DISPLAY_NAMES.get(platform_config.provider, platform_config.provider.value)
    print(f"\nVendor:           {vendor}")
    for mode in (Mode.TEST, Mode.PRODUCTION):
        state = "configured" if platform_config.has_credentials(mode) else "missing or placeholder"
        print(f"  {mode.value:15s} {state}")
    return platform_config.has_credentials(Mode.TEST if Config.TEST_MODE else Mode.PRODUCTION)


def check_environment(env_name: str = None) -> bool:
    """Check if environment is valid and show its configuration."""
    try:
        loaded_env = Config.load_environment(env_name)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return False

    print(f"\nLoaded Environment: {loaded_env}")
    print("=" * 60)
    print(f"Gateway:          {'relay ' + Config.RELAY_URL if Config.USE_RELAY else 'direct'}")
    print(f"Request Timeout:  {Config.REQUEST_TIMEOUT}s")
    print(f"Mode:             {'test' if Config.TEST_MODE else 'production'}")
    print(f"Output Directory: {Config.OUTPUT_DIR}")
    print(f"Credentials File: {Config.CREDENTIALS_FILE}")

    ok = check_credentials()
    if not ok:
        print("\nWARNING: No usable credentials for the selected mode!")
        print("Please check your credentials file.")
    return ok


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Check environment configuration and vendor credentials"
    )
    parser.add_argument(
        "environment",
        nargs="?",
        help="Environment name to check (if not provided, uses default)",
    )
    parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available environments",
    )

    args = parser.parse_args()

    if args.list:
        list_environments()
    else:
        sys.exit(0 if check_environment(args.environment) else 1)


if __name__ == "__main__":
    main()
