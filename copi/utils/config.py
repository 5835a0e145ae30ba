import os
import tomllib
from enum import StrEnum
from importlib import resources
from typing import Any, Callable, LiteralString, TypeVar

import hvac

from copi.utils.logger import get_logger

_logger = get_logger(__name__)

_config: dict[str, Any] = {}

vault_client: hvac.Client | None = None

T = TypeVar("T")


class Environment(StrEnum):
    LOCALHOST = "localhost"
    SANDBOX = "sandbox"
    PRODUCTION = "production"


def current_environment() -> Environment:
    conf_env = os.getenv("COPI_CONF_ENV", "localhost")
    try:
        return Environment(conf_env)
    except ValueError:
        _logger.error("Invalid COPI_CONF_ENV: '%s', using 'localhost' instead", conf_env)
        return Environment.LOCALHOST


def get_vault_client() -> hvac.Client | None:
    return vault_client


def get_secret_from_vault(keypath: str, key: str, mount_point: str) -> str:
    if vault_client is None:
        raise RuntimeError("Vault client is not initialized")
    secret_response = vault_client.secrets.kv.v2.read_secret_version(
        path=keypath, mount_point=mount_point
    )
    return secret_response["data"]["data"][key]


def _load_config():
    global _config

    environment = current_environment()
    config_package = "copi.resources.config"
    config_file = f"{environment}.toml"
    _config = tomllib.loads(
        resources.files(config_package).joinpath(config_file).read_text(encoding="utf-8")
    )
    assert _config, (
        f"Invalid config for '{environment}' from '{config_package}:{config_file}':\n{_config}"
    )
    _logger.info(
        "Successfully loaded configuration for '%s' from '%s:%s'",
        environment,
        config_package,
        config_file,
    )


def get_config(key: LiteralString, coerce: Callable[[Any], T] = str) -> T:
    """Return config field based on environment

    :param key: Dot-separated key for the config e.g. "database.host", "database.pool.min_size"
    :param coerce: Callable that converts config value into a specific type (Default: str)
    """
    assert key, f"Invalid config key '{key}'"

    if not _config:
        _load_config()

    result = _config
    try:
        for k in key.split("."):
            result = result[k]
    except KeyError as ke:
        _logger.exception("Unknown config '%s'", key)
        raise ke
    return coerce(result)


def get_secret(name: str) -> str:
    """Resolve a named secret, e.g. "database_password" or "session_secret".

    Lookup order: ``COPI_<NAME>`` environment variable, then Vault in production,
    then the ``secrets`` table of the environment's config file.
    """
    env_value = os.getenv(f"COPI_{name.upper()}")
    if env_value:
        return env_value

    if current_environment() == Environment.PRODUCTION:
        return get_secret_from_vault(
            keypath=get_config(f"vault.secrets.{name}.keypath"),  # type: ignore[arg-type]
            key=get_config(f"vault.secrets.{name}.key"),  # type: ignore[arg-type]
            mount_point=get_config("vault.mount_point"),
        )
    return get_config(f"secrets.{name}")  # type: ignore[arg-type]


def init_vault_client():
    """Init vault client object and return it"""
    global vault_client
    vault_client = hvac.Client(
        url=get_config("vault.endpoint"),
        token=os.environ["COPI_VAULT_TOKEN"],
        verify=get_config("vault.cert_path"),
    )

    if vault_client.is_authenticated():
        _logger.info("Vault authentication successful")
    else:
        _logger.critical("Vault authentication failed")
        raise RuntimeError("Vault authentication failed")
    return vault_client
