from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .logging_setup import logger

OPTIONS_PATH = Path("/data/options.json")


def _candidate_paths() -> list[Path]:
    """
    Ordered settings locations (explicit env first, then add-on, then local/dev).
    """
    env_path = os.environ.get("CONFIG_PATH")
    paths: list[Path] = []
    if env_path:
        paths.append(Path(env_path))
    paths.extend(
        [
            Path("/data/airsend_addon.yaml"),
            Path("/config/airsend_addon.yaml"),
            Path(__file__).parent / "airsend_addon.yaml",
        ]
    )
    return paths


def _load_options_json(
    path: Path = OPTIONS_PATH,
) -> tuple[dict[str, Any], Path | None]:
    """
    Load Home Assistant add-on options (JSON). Returns (data, source_path).
    """
    if not path.exists():
        logger.debug("[CONFIG] options.json not found: %s", path)
        return {}, None
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        logger.warning("[CONFIG] Failed to parse options.json %s: %s", path, exc)
        return {}, None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("[CONFIG] Failed to read options.json %s: %s", path, exc)
        return {}, None
    if not isinstance(data, dict):
        logger.warning("[CONFIG] options.json root not a mapping: %s", path)
        return {}, None
    logger.info("[CONFIG] Loaded options from: %s", path)
    return data, path


def _load_yaml_cfg(
    paths: list[Path] | None = None,
) -> tuple[dict[str, Any], Path | None]:
    """
    Load YAML settings from the first valid candidate path.
    Returns (data, source_path). Empty dict if none valid.
    """
    candidates = paths or _candidate_paths()
    for pth in candidates:
        if not pth.exists():
            logger.debug("[CONFIG] Path not found: %s", pth)
            continue
        try:
            with pth.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            logger.warning("[CONFIG] Failed to parse YAML %s: %s", pth, exc)
            continue
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("[CONFIG] Failed to read YAML %s: %s", pth, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("[CONFIG] YAML root not a mapping: %s", pth)
            continue
        logger.info("[CONFIG] Loaded YAML config from: %s", pth)
        return data, pth
    return {}, None


def load_config(
    options_path: Path = OPTIONS_PATH,
    yaml_paths: list[Path] | None = None,
) -> tuple[dict[str, Any], Path | None]:
    """
    Produce the effective add-on settings mapping.
    Precedence: /data/options.json (HA) overrides YAML values.
    Returns (config_dict, primary_source_path).
    """
    yml, yml_src = _load_yaml_cfg(yaml_paths)
    opts, opts_src = _load_options_json(options_path)
    merged: dict[str, Any] = {}
    merged.update(yml)
    merged.update(opts)
    source = opts_src or yml_src
    if not merged:
        logger.info("[CONFIG] No add-on settings found; using defaults")
    return merged, source


def _env_truthy(val: Any) -> bool:
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AddonSettings:
    """Effective add-on settings, built once at startup."""

    hass_api_base: str = "http://supervisor/core/api"
    token_file: str = "hass_api.token"
    devices_file: str = "/config/airsend.yaml"
    secrets_file: str = "/config/secrets.yaml"
    listening_state_file: str = "/tmp/airsend_listening.json"
    log_file: str | None = None
    log_level: str = "INFO"
    bind_host: str = "0.0.0.0"
    port: int = 33863
    callback_host: str | None = None
    strict_config: bool = False
    enable_health_checks: bool = False

    @classmethod
    def from_config(cls, cfg: dict[str, Any] | None = None) -> AddonSettings:
        """Apply config values, then AIRSEND_<FIELD> environment overrides."""
        cfg = cfg or {}
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = os.environ.get(f"AIRSEND_{f.name.upper()}", cfg.get(f.name))
            if raw is None or raw == "":
                continue
            if f.name in ("strict_config", "enable_health_checks"):
                values[f.name] = raw if isinstance(raw, bool) else _env_truthy(raw)
            elif f.name == "port":
                try:
                    values[f.name] = int(raw)
                except (TypeError, ValueError):
                    logger.warning("[CONFIG] Ignoring invalid port: %r", raw)
            else:
                values[f.name] = str(raw)
        return cls(**values)


def load_settings() -> AddonSettings:
    cfg, src = load_config()
    settings = AddonSettings.from_config(cfg)
    logger.debug("[CONFIG] Active source: %s", src)
    return settings


__all__ = [
    "AddonSettings",
    "load_config",
    "load_settings",
    "_load_options_json",
    "_load_yaml_cfg",
]
