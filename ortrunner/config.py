# ortrunner/config.py
import json
from pathlib import Path

import yaml


def load_config(path: str = None):
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    if p.suffix.lower() in {".yml", ".yaml"}:
        return yaml.safe_load(p.read_text()) or {}
    if p.suffix.lower() == ".json":
        return json.loads(p.read_text())
    raise ValueError("Config must be .yml/.yaml or .json")


def pick(*vals):
    # first non-None
    for v in vals:
        if v is not None:
            return v
    return None

