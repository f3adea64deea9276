"""Service configuration loaded from a JSON file."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping


@dataclass
class Config:
    """Database and storage settings for the image service."""

    base_api_url: str = ""
    db_host: str = ""
    db_port: int = 0
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""
    db_schema: str = ""
    ssl_mode: str = ""
    pluto_verbose: bool = False
    pluto_image_dir: str = ""
    pluto_cache_dir: str = ""

    def print(self) -> None:
        """Write a summary of the settings (without the password) to stdout."""
        lines = [
            "pluto Config",
            f"  base_api_url: {self.base_api_url}",
            f"  db_host: {self.db_host}",
            f"  db_port: {self.db_port}",
            f"  db_user: {self.db_user}",
            f"  db_name: {self.db_name}",
            f"  db_schema: {self.db_schema}",
            f"  ssl_mode: {self.ssl_mode}",
            f"  pluto_verbose: {'true' if self.pluto_verbose else 'false'}",
            f"  pluto_image_dir: {self.pluto_image_dir}",
            f"  pluto_cache_dir: {self.pluto_cache_dir}",
        ]
        print("\n".join(lines))


_FIELD_TYPES = {f.name: f.type for f in fields(Config)}


def _check_value(name: str, value: Any) -> Any:
    kind = _FIELD_TYPES[name]
    if kind in ("int", int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"config field {name!r} must be an integer")
    elif kind in ("bool", bool):
        if not isinstance(value, bool):
            raise ValueError(f"config field {name!r} must be a boolean")
    elif not isinstance(value, str):
        raise ValueError(f"config field {name!r} must be a string")
    return value


def _resolve_field(key: str) -> str | None:
    if key in _FIELD_TYPES:
        return key
    folded = key.lower()
    for name in _FIELD_TYPES:
        if name.lower() == folded:
            return name
    return None


def _config_from_mapping(data: Mapping[str, Any]) -> Config:
    config = Config()
    for key, value in data.items():
        name = _resolve_field(key)
        if name is None or value is None:
            continue
        setattr(config, name, _check_value(name, value))
    return config


def load_config(path: str | Path) -> Config:
    """Read a JSON configuration file.

    Unknown keys are ignored and missing keys keep their defaults.
    Raises OSError if the file cannot be read and ValueError if the
    content is not valid JSON or a value has the wrong type.
    """
    text = Path(path).read_text(encoding="utf-8")
    data = json.loads(text)
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ValueError("configuration must be a JSON object")
    return _config_from_mapping(data)