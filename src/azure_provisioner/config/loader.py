"""Read ``azure-provisioner.yaml`` and resolve provider credentials."""

from __future__ import annotations

import logging
import os
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values
from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.constructor import SafeConstructor

from azure_provisioner.config.schema import STRICT_VARIABLE, Config

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from azure_provisioner.resources.base import Resource

logger = logging.getLogger(__name__)

DOTENV_NAME = ".env"

# provider field -> variable consulted in the process env and the .env file
ARM_VARIABLES: dict[str, str] = {
    "subscription_id": "ARM_SUBSCRIPTION_ID",
    "tenant_id": "ARM_TENANT_ID",
    "client_id": "ARM_CLIENT_ID",
    "client_secret": "ARM_CLIENT_SECRET",
    "require_import": STRICT_VARIABLE,
}


class ConfigError(Exception):
    """The configuration file could not be read or is invalid."""


def _as_bool(raw: str, variable: str) -> bool:
    # Same spellings the YAML safe loader accepts (true/false, yes/no, on/off).
    try:
        return SafeConstructor.bool_values[raw.lower()]
    except KeyError:
        raise ConfigError(f"Invalid boolean for {variable}: {raw!r}") from None


def _read_dotenv(config_dir: Path) -> Mapping[str, str | None]:
    env_file = config_dir / DOTENV_NAME
    if not env_file.is_file():
        return {}
    logger.debug("Reading provider defaults from %s", env_file)
    # utf-8-sig strips the BOM some Windows editors prepend.
    return dotenv_values(env_file, encoding="utf-8-sig")


def _resolve_provider(raw_provider: Mapping[str, Any], config_dir: Path) -> dict[str, Any]:
    """Merge the ``provider:`` block with ``ARM_*`` variables.

    For each field the first non-null value wins, in this order: the YAML
    file, the process environment, the ``.env`` file next to the config.
    Fields found nowhere are left out so the model defaults apply.
    """
    layers: tuple[Mapping[str, Any], ...] = (os.environ, _read_dotenv(config_dir))

    resolved: dict[str, Any] = {}
    for field, variable in ARM_VARIABLES.items():
        value = raw_provider.get(field)
        if value is None:
            value = next((layer[variable] for layer in layers if layer.get(variable)), None)
        if value is None:
            continue
        if field == "require_import" and isinstance(value, str):
            value = _as_bool(value, variable)
        resolved[field] = value
    return resolved


def _validate_unique_addresses(resources: Iterable[Resource]) -> list[str]:
    """Return one message per address declared more than once."""
    counts = Counter(r.address for r in resources)
    return [f"Duplicate resource address '{addr}'" for addr, n in counts.items() if n > 1]


def load_config(path: Path | str) -> Config:
    """Parse *path* into a validated :class:`Config`.

    Raises:
        ConfigError: unreadable file, malformed YAML, schema violations or
            duplicate resource addresses.
    """
    path = Path(path)
    try:
        document = YAML(typ="safe").load(path)
    except Exception as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    document["provider"] = _resolve_provider(document.get("provider") or {}, path.parent)
    try:
        config = Config.model_validate(document)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
    config.config_dir = path.parent

    duplicates = _validate_unique_addresses(config.resources)
    if duplicates:
        raise ConfigError("\n".join(duplicates))

    logger.info(
        "Loaded %s: %d role definition(s), %d PostgreSQL administrator(s)",
        path,
        len(config.role_definitions),
        len(config.postgresql_administrators),
    )
    return config
