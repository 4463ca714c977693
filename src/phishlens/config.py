"""
Configuration management - TOML config file, secrets.json, and environment variables.
"""

import json
import os
from pathlib import Path
from typing import Optional

import tomli


CONFIG_DIR = Path.home() / ".phishlens"
CONFIG_PATH = CONFIG_DIR / "config.toml"
SECRETS_PATH = Path.cwd() / "secrets.json"

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_PROXY_HOST = "127.0.0.1"
DEFAULT_PROXY_PORT = 8787
DEFAULT_PROXY_PREFIX = "/api/proxy"

TRUTHY = ("1", "true", "yes")


def ensure_config_dir() -> None:
    """Create ~/.phishlens/ directory if it doesn't exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def load_config() -> dict:
    """
    Load configuration from multiple sources.

    Priority (highest to lowest):
    1. Environment variables (read by the individual getters)
    2. secrets.json in project root (dev mode)
    3. ~/.phishlens/config.toml (user config)

    Returns:
        Merged configuration dictionary
    """
    config = {}

    if CONFIG_PATH.exists():
        with open(CONFIG_PATH, "rb") as f:
            toml_config = tomli.load(f)
            config.update(_flatten_config(toml_config))

    if SECRETS_PATH.exists():
        with open(SECRETS_PATH) as f:
            secrets = json.load(f)
            secrets.pop("comment", None)
            config.update(secrets)

    return config


def _flatten_config(toml_config: dict) -> dict:
    """Flatten nested TOML config to simple key-value pairs."""
    result = {}

    if "api" in toml_config:
        api = toml_config["api"]
        if "base_url" in api:
            result["api_base_url"] = api["base_url"]
        if "radar_token" in api:
            result["radar_api_token"] = api["radar_token"]

    if "defaults" in toml_config:
        result.update(toml_config["defaults"])

    if "proxy" in toml_config:
        for key, value in toml_config["proxy"].items():
            result[f"proxy_{key}"] = value

    return result


def _is_truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in TRUTHY


def get_api_base_url() -> Optional[str]:
    """
    Get the upstream analysis service base URL.

    Priority: PHISHLENS_API_BASE_URL > secrets.json > config.toml

    Returns:
        Base URL without trailing slash, or None when running without a backend
    """
    value = os.getenv("PHISHLENS_API_BASE_URL")
    if not value:
        value = load_config().get("api_base_url")
    if not value or not isinstance(value, str):
        return None
    return value.rstrip("/") or None


def get_proxy_base_url() -> Optional[str]:
    """
    Get the base URL the reverse proxy forwards to.

    PHISHING_API_BASE_URL is checked first so a proxy can point somewhere
    other than the CLI's own analysis target.
    """
    value = os.getenv("PHISHING_API_BASE_URL")
    if value:
        return value.rstrip("/") or None
    return get_api_base_url()


def get_radar_token() -> Optional[str]:
    """
    Get the Cloudflare Radar API token.

    Priority: RADAR_API_TOKEN > secrets.json > config.toml

    Returns:
        Token string or None if not found
    """
    env_value = os.getenv("RADAR_API_TOKEN")
    if env_value:
        return env_value

    value = load_config().get("radar_api_token")
    # Skip placeholder values
    if value and isinstance(value, str) and not value.startswith("your-"):
        return value

    return None


def is_live_required() -> bool:
    """
    Check if a live backend is mandatory.

    Set PHISHLENS_REQUIRE_LIVE=1 (or [defaults] require_live = true) to fail
    with MisconfiguredEnvironment instead of falling back to the simulator.
    """
    env_value = os.getenv("PHISHLENS_REQUIRE_LIVE")
    if env_value is not None and env_value != "":
        return _is_truthy(env_value)
    return _is_truthy(load_config().get("require_live", False))


def get_timeout_ms() -> int:
    """Upstream HTTP timeout in milliseconds."""
    value = os.getenv("PHISHLENS_TIMEOUT") or load_config().get("timeout")
    try:
        return int(value) if value else DEFAULT_TIMEOUT_MS
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_MS


def get_proxy_settings() -> dict:
    """
    Get reverse proxy settings from config.

    Example config.toml:
    ```toml
    [proxy]
    host = "0.0.0.0"
    port = 8787
    prefix = "/api/proxy"
    ```

    Returns:
        Dict with 'host', 'port' and 'prefix'
    """
    config = load_config()
    return {
        "host": config.get("proxy_host", DEFAULT_PROXY_HOST),
        "port": int(config.get("proxy_port", DEFAULT_PROXY_PORT)),
        "prefix": config.get("proxy_prefix", DEFAULT_PROXY_PREFIX),
    }


def setup_config() -> None:
    """
    Interactive configuration setup on first run.

    Prompts for the backend URL and Radar token and writes ~/.phishlens/config.toml.
    """
    print("PhishLens Configuration Setup")
    print("=" * 40)
    print()

    ensure_config_dir()

    print("Analysis service base URL (leave empty to use the built-in simulator):")
    base_url = input("  Base URL: ").strip()

    print()
    print("Cloudflare Radar API token (optional, for the threat globe feed):")
    radar_token = input("  Token (press Enter to skip): ").strip()

    print()
    require_live = input("Fail instead of simulating when no backend is set? [y/N]: ").strip().lower()

    config_content = """# PhishLens Configuration
# Generated by: phishlens setup

[api]
"""
    if base_url:
        config_content += f'base_url = "{base_url}"\n'
    if radar_token:
        config_content += f'radar_token = "{radar_token}"\n'

    config_content += f"""
[defaults]
timeout = {DEFAULT_TIMEOUT_MS}
require_live = {"true" if require_live in ("y", "yes") else "false"}

[proxy]
host = "{DEFAULT_PROXY_HOST}"
port = {DEFAULT_PROXY_PORT}
prefix = "{DEFAULT_PROXY_PREFIX}"
"""

    with open(CONFIG_PATH, "w") as f:
        f.write(config_content)

    print()
    print(f"Configuration saved to: {CONFIG_PATH}")
    print("You can edit this file directly to change settings.")
