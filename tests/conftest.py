import json
import sys
from pathlib import Path

import pytest

# Ensure src package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))


EXTERNAL_MANIFESTS = {
    "ext-root": {
        "license": "MIT",
        "homepage": "https://github.com/acme/ext-root#readme",
    },
    "ext-dev": {"license": "MIT", "repository": "github:acme/ext-dev"},
    "ext-transitive": {"license": "Apache-2.0", "repository": "acme/ext-transitive"},
    "ext-web": {
        "license": "MIT",
        "dependencies": {"ext-transitive": "^1.0.0"},
        "repository": {"type": "git", "url": "git+ssh://git@github.com/acme/ext-web.git"},
    },
    "ext-shared": {"license": "MIT", "homepage": "https://github.com/acme/ext-shared"},
    "ext-none": {"license": "MIT", "homepage": "https://github.com/acme/ext-none"},
    "ext-mobile": {
        "license": "MIT",
        "homepage": "https://github.com/acme/ext-mobile",
        "dependencies": {"ext-none": "^1.0.0"},
    },
}

EXTERNAL_FILES = {
    "ext-web": {"NOTICE": "EXT NOTICE TEXT"},
    "ext-shared": {"LICENSE": "EXT LICENSE TEXT"},
    "ext-mobile": {"NOTICE": "EXT NOTICE TEXT"},
}

WORKSPACES = {
    "packages/app-shared": {"name": "app-shared", "dependencies": {"ext-shared": "^1.0.0"}},
    "packages/app-web": {
        "name": "app-web",
        "dependencies": {"app-shared": "*", "ext-web": "^1.0.0"},
        "devDependencies": {"ext-dev": "^1.0.0"},
    },
    "packages/app-mobile": {
        "name": "app-mobile",
        "dependencies": {"ext-mobile": "^1.0.0", "ext-none": "^1.0.0", "app-shared": "*"},
    },
}


def _write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2))


def build_npm_project(root: Path) -> Path:
    """Write a package-lock.json + node_modules tree for a small workspace monorepo."""

    packages: dict = {
        "": {
            "name": "fixture-root",
            "workspaces": ["packages/*"],
            "dependencies": {"ext-root": "^1.0.0"},
        }
    }
    for path, manifest in WORKSPACES.items():
        entry = {"version": "1.0.0", **manifest}
        packages[path] = entry
        packages[f"node_modules/{manifest['name']}"] = {"resolved": path, "link": True}
        _write_json(root / path / "package.json", entry)

    for name, manifest in EXTERNAL_MANIFESTS.items():
        full = {"name": name, "version": "1.0.0", **manifest}
        lock_entry = {"version": "1.0.0", "license": manifest["license"]}
        if "dependencies" in manifest:
            lock_entry["dependencies"] = manifest["dependencies"]
        packages[f"node_modules/{name}"] = lock_entry
        _write_json(root / "node_modules" / name / "package.json", full)
        for filename, content in EXTERNAL_FILES.get(name, {}).items():
            (root / "node_modules" / name / filename).write_text(content)

    _write_json(root / "package.json", packages[""])
    _write_json(
        root / "package-lock.json",
        {"name": "fixture-root", "lockfileVersion": 3, "requires": True, "packages": packages},
    )
    return root


@pytest.fixture
def npm_project(tmp_path: Path) -> Path:
    return build_npm_project(tmp_path / "project")
