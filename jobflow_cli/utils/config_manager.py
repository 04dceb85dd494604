"""Persistent CLI settings stored as YAML under ~/.jobflow"""

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()

DEFAULT_API_URL = "http://localhost:8000"


def _url(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError("must start with http:// or https://")
    return value.rstrip("/")


def _positive_int(value: str) -> int:
    if not value.isdigit() or int(value) < 1:
        raise ValueError("must be a positive whole number")
    return int(value)


# Keys with a known type; anything else is stored as a plain string
KEY_PARSERS: dict[str, Callable[[str], Any]] = {
    "api.base_url": _url,
    "api.timeout": _positive_int,
    "display.jobs_per_page": _positive_int,
}


def parse_value(key: str, raw: str) -> Any:
    """Convert a command-line string to the stored type for ``key``.

    Raises ValueError with a message naming the key when it does not parse.
    """
    parser = KEY_PARSERS.get(key)
    if parser is None:
        return raw
    try:
        return parser(raw)
    except ValueError as e:
        raise ValueError(f"{key} {e}") from None


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """{'api': {'timeout': 30}} -> {'api.timeout': 30}"""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(flatten(value, full_key))
        else:
            flat[full_key] = value
    return flat


class ConfigManager:
    """Read and write the CLI config file, layered over built-in defaults."""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = Path(
            config_dir or os.getenv("JOBFLOW_CONFIG_DIR") or Path.home() / ".jobflow"
        )
        self.config_file = self.config_dir / "config.yaml"

    def defaults(self) -> dict[str, Any]:
        return {
            "api": {
                "base_url": os.getenv("JOBFLOW_API_URL", DEFAULT_API_URL),
                "timeout": 30,
            },
            "display": {"jobs_per_page": 10},
        }

    def _read_file(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[red]Ignoring unreadable config {self.config_file}: {e}[/red]")
            return {}
        return data if isinstance(data, dict) else {}

    def load_config(self) -> dict[str, Any]:
        """Defaults with the file's values merged on top."""
        merged = self.defaults()
        for section, values in self._read_file().items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = values
        return merged

    def save_config(self, data: dict[str, Any]) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as 'api.base_url'."""
        node: Any = self.load_config()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        data = self._read_file()
        *parents, leaf = key.split(".")
        node = data
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
        self.save_config(data)

    def reset(self) -> None:
        """Drop every stored override."""
        if self.config_file.exists():
            self.config_file.unlink()


config = ConfigManager()
