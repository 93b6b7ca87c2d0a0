from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .errors import PolicyError
from .license_audit import parse_allow_values


@dataclass
class LicensePolicy:
    """Allow-list plus optional traversal defaults read from a YAML file.

    Example::

        allow:
          - MIT
          - Apache-2.0
        include_dev: false
        recursive_npm: true
    """

    allow: List[str] = field(default_factory=list)
    include_dev: Optional[bool] = None
    recursive_workspaces: Optional[bool] = None
    recursive_npm: Optional[bool] = None


def _load_yaml(path: Path) -> dict:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise PolicyError(f"Unable to parse policy file {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise PolicyError(f"Policy file {path} must contain a mapping")
    return raw


def _optional_bool(raw: dict, key: str, path: Path) -> Optional[bool]:
    value = raw.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise PolicyError(f"Policy file {path}: '{key}' must be true or false")


def load_policy(path: Path) -> LicensePolicy:
    raw = _load_yaml(path)
    allow = raw.get("allow") or raw.get("allowlist") or []
    if isinstance(allow, str):
        allow = [allow]
    if not isinstance(allow, list):
        raise PolicyError(f"Policy file {path}: 'allow' must be a list of license identifiers")

    return LicensePolicy(
        allow=parse_allow_values(str(item) for item in allow),
        include_dev=_optional_bool(raw, "include_dev", path),
        recursive_workspaces=_optional_bool(raw, "recursive_workspaces", path),
        recursive_npm=_optional_bool(raw, "recursive_npm", path),
    )
