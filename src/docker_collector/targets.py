"""Seeding collector items from a YAML file.

Example::

    targets:
      - id: build-host
        niceName: Build host
        environment: ci
        options:
          host: tcp://10.0.0.12:2375
          apiVersion: "1.41"
      - niceName: Local
        enabled: false
        options:
          host: unix:///var/run/docker.sock
          apiVersion: "1.43"
"""

import uuid
from pathlib import Path

import yaml

from .models import CollectorItem, OPTION_HOST

ITEM_FIELDS = ("description", "niceName", "environment", "refreshLink", "altIdentifier")

# Namespace for ids derived from entries that do not name one
TARGET_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "docker-collector:target")


def derive_target_id(options: dict, nice_name: str = "") -> str:
    """Stable id for a target entry without an explicit one, so reloading a file replaces it."""
    key = f"{options.get(OPTION_HOST, '')}\n{nice_name}"
    return uuid.uuid5(TARGET_ID_NAMESPACE, key).hex


def parse_targets(data: dict) -> list[CollectorItem]:
    """Build collector items from parsed YAML data."""
    entries = (data or {}).get("targets") or []
    if not isinstance(entries, list):
        raise ValueError("'targets' must be a list")

    items = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Target #{index} must be a mapping")

        options = entry.get("options") or {}
        if not isinstance(options, dict):
            raise ValueError(f"Target #{index}: 'options' must be a mapping")

        options = {str(k): str(v) for k, v in options.items()}
        entry_id = entry.get("id") or derive_target_id(options, str(entry.get("niceName") or ""))
        item = CollectorItem(
            id=str(entry_id),
            enabled=bool(entry.get("enabled", True)),
            options=options,
        )
        for name in ITEM_FIELDS:
            if name in entry:
                setattr(item, name, str(entry[name]))
        items.append(item)

    return items


def load_targets(path: Path) -> list[CollectorItem]:
    """Load collector items from a YAML file."""
    with open(path, "r") as f:
        return parse_targets(yaml.safe_load(f))
