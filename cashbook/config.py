from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict

import yaml

CONFIG_ENV = "CASHBOOK_CONFIG"

DEFAULT_CONFIG: Dict[str, object] = {
    "storage": "json",
    "storage_backends": {
        "json": "cashbook.backends.json_file.JSONFileBackend",
        "sqlite": "cashbook.backends.sqlite.SQLiteBackend",
        "memory": "cashbook.backends.memory.MemoryBackend",
    },
    "output_modules": {
        "excel": "cashbook.outputs.excel_output.ExcelOutput",
        "html": "cashbook.outputs.html_output.HTMLOutput",
        "text": "cashbook.outputs.text_output.TextOutput",
    },
    "data_dir": "./data",
    "db_path": "./data/cashbook.db",
    "output_dir": "./reports",
    "organization": "",
    "source": "cashbook",
    "report_prefix": "Cashbook",
    "currency_format": "#,##0.00",
    "max_repeat": 100,
}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def resolve_config_path(path: str | Path | None = None) -> Path | None:
    explicit = path or os.environ.get(CONFIG_ENV)
    if explicit:
        return Path(explicit)
    default = Path("config.yaml")
    return default if default.exists() else None


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    target = resolve_config_path(path)
    if target is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    if not target.exists():
        raise FileNotFoundError(f"Config file not found: {target}")
    with target.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {target} must contain a mapping")
    return _merge_defaults(data, DEFAULT_CONFIG)


def save_config(config: Dict[str, object], path: str | Path) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config, fp, sort_keys=False)
