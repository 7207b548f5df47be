"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, Tuple
from urllib.parse import parse_qs, urlsplit

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import PlannerConfig

DEFAULT_NEXTCLOUD_DIR = "/Photos"
_WEB_UI_MARKER = "/apps/files/files"


def resolve_with_precedence(
    *,
    defaults: PlannerConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> PlannerConfig:
    """Merge configuration sources: defaults < file < environment < CLI."""
    baseline = defaults.model_dump(mode="python")

    merged = deepcopy(baseline)
    for name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        overrides = _normalize_mapping(source, source_name=name)
        merged = _deep_merge(merged, overrides)

    nextcloud = merged.get("nextcloud")
    if isinstance(nextcloud, dict):
        base_url, directory = resolve_nextcloud_location(
            str(nextcloud.get("base_url") or ""), str(nextcloud.get("dir") or "")
        )
        nextcloud["base_url"] = base_url
        nextcloud["dir"] = directory or DEFAULT_NEXTCLOUD_DIR

    try:
        return PlannerConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def resolve_nextcloud_location(base_input: str, dir_input: str) -> Tuple[str, str]:
    """Split a Nextcloud base URL and target directory.

    A URL copied from the Nextcloud files web UI (``.../apps/files/files?dir=/x``)
    contributes its ``dir`` query parameter when no directory is configured.
    Only the origin of the URL is kept as the base.

    Args:
        base_input: Configured base URL, possibly a pasted web-UI URL.
        dir_input: Configured directory, possibly empty.

    Returns:
        Tuple[str, str]: Normalized base URL without trailing slash and directory.
    """
    base_url = (base_input or "").strip()
    directory = (dir_input or "").strip()

    if base_url:
        parsed = urlsplit(base_url)
        if parsed.scheme and parsed.netloc:
            if _WEB_UI_MARKER in parsed.path and not directory:
                directory = parse_qs(parsed.query).get("dir", [""])[0]
            base_url = f"{parsed.scheme}://{parsed.netloc}"

    return base_url.rstrip("/"), directory


def flatten_for_env(config: PlannerConfig) -> Dict[str, str]:
    """Flatten the config into `IGPLANNER__SECTION__KEY` environment variable mappings."""
    flat: Dict[str, str] = {}
    data = config.model_dump(mode="python")

    def _recurse(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _recurse(prefix + [str(key)], child)
        else:
            env_key = "IGPLANNER__" + "__".join(part.upper() for part in prefix)
            if isinstance(value, list):
                rendered = yaml.safe_dump(value, default_flow_style=True).strip()
            else:
                rendered = "null" if value is None else str(value)
            flat[env_key] = rendered

    for top_key, child_value in data.items():
        _recurse([str(top_key)], child_value)

    return flat


def _normalize_mapping(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in dict(source).items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        path = key.split(".") if "." in key else [key]
        _assign(result, path, value, source_name=source_name)
    return result


def _assign(target: dict[str, Any], path: list[str], value: Any, *, source_name: str) -> None:
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            joined = ".".join(path)
            raise ConfigError(
                f"{source_name.capitalize()} override for {joined} conflicts with existing value."
            )
        node = existing
    leaf = path[-1]
    if isinstance(value, MappingABC):
        nested = _normalize_mapping(value, source_name=source_name)
        existing_leaf = node.get(leaf, {})
        if not isinstance(existing_leaf, MappingABC):
            existing_leaf = {}
        node[leaf] = _deep_merge(existing_leaf, nested)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key, value in base.items():
        merged[key] = deepcopy(value)
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(dict(merged[key]), value)  # type: ignore[arg-type]
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["resolve_with_precedence", "resolve_nextcloud_location", "flatten_for_env"]
