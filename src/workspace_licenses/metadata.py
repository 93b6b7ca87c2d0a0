from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote

import requests  # type: ignore[import-untyped]

from .errors import MetadataLookupError
from .types import Package, PackageMetadata
from .url_normalization import select_package_url

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
UNKNOWN_LICENSE = "UNKNOWN"
LICENSE_FILE_PREFIXES = ("license", "licence", "copying")
NOTICE_FILE_PREFIXES = ("notice",)


def parse_raw_license_type(raw_licenses: Any) -> str | None:
    """Join the legacy ``licenses`` array into an ``OR`` expression."""

    if not isinstance(raw_licenses, list) or not raw_licenses:
        return None

    values: List[str] = []
    for entry in raw_licenses:
        if isinstance(entry, str):
            value = entry.strip()
        elif isinstance(entry, dict) and isinstance(entry.get("type"), str):
            value = entry["type"].strip()
        else:
            value = ""
        if value:
            values.append(value)

    if not values:
        return None
    return " OR ".join(values)


def license_type_from_manifest(manifest: dict) -> str:
    declared = manifest.get("license")
    if isinstance(declared, str) and declared.strip():
        return declared.strip()
    if isinstance(declared, dict) and isinstance(declared.get("type"), str) and declared["type"].strip():
        return declared["type"].strip()
    return parse_raw_license_type(manifest.get("licenses")) or UNKNOWN_LICENSE


def metadata_from_manifest(manifest: dict, license_text: str = "") -> PackageMetadata:
    repository = manifest.get("repository")
    homepage = manifest.get("homepage")
    return PackageMetadata(
        license_type=license_type_from_manifest(manifest),
        url=select_package_url(repository, homepage),
        raw_repository=repository,
        raw_homepage=homepage,
        license_text=license_text,
    )


def read_license_text(package_dir: Path) -> str:
    """Concatenate LICENSE-style files, then NOTICE files, found in ``package_dir``."""

    if not package_dir.is_dir():
        return ""

    files = sorted((path for path in package_dir.iterdir() if path.is_file()), key=lambda p: p.name.lower())
    ordered = [p for p in files if p.name.lower().startswith(LICENSE_FILE_PREFIXES)]
    ordered += [p for p in files if p.name.lower().startswith(NOTICE_FILE_PREFIXES)]

    texts = []
    for path in ordered:
        content = path.read_text(encoding="utf-8", errors="replace").strip()
        if content:
            texts.append(content)
    return "\n\n".join(texts)


class MetadataSource:
    """Asynchronous ``Package -> PackageMetadata`` lookup."""

    async def lookup(self, package: Package) -> PackageMetadata:  # pragma: no cover - interface
        raise NotImplementedError


class RegistryMetadataSource(MetadataSource):
    """Fetch version manifests from an npm-compatible registry."""

    def __init__(
        self,
        registry_url: str | None = None,
        timeout: float | None = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.registry_url = (registry_url or os.environ.get("NPM_REGISTRY_URL") or DEFAULT_REGISTRY_URL).rstrip("/")
        env_timeout = os.environ.get("NPM_REGISTRY_TIMEOUT")
        try:
            default_timeout = float(env_timeout) if env_timeout is not None else 8.0
        except ValueError:
            default_timeout = 8.0
        self.timeout = timeout or default_timeout
        self.session = session or requests.Session()

    def manifest_url(self, package: Package) -> str:
        return f"{self.registry_url}/{quote(package.name, safe='@')}/{quote(package.version or 'latest')}"

    def fetch_manifest(self, package: Package) -> dict:
        url = self.manifest_url(package)
        logger.debug("Fetching %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise MetadataLookupError(f"Unable to reach registry for {package.ident}: {exc}") from exc
        if response.status_code != 200:
            raise MetadataLookupError(
                f"Registry returned {response.status_code} for {package.ident} ({url})"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MetadataLookupError(f"Registry sent invalid JSON for {package.ident}: {exc}") from exc
        if not isinstance(payload, dict):
            raise MetadataLookupError(f"Registry sent an unexpected payload for {package.ident}")
        return payload

    async def lookup(self, package: Package) -> PackageMetadata:
        manifest = await asyncio.to_thread(self.fetch_manifest, package)
        return metadata_from_manifest(manifest)


class InstalledMetadataSource(MetadataSource):
    """Read manifests and license files from the installed ``node_modules`` tree.

    Packages that are not on disk are delegated to ``fallback`` when one is
    configured (typically a :class:`RegistryMetadataSource` in online mode);
    otherwise the lookup fails.
    """

    def __init__(self, root: Path, fallback: MetadataSource | None = None, with_license_text: bool = False) -> None:
        self.root = root
        self.fallback = fallback
        self.with_license_text = with_license_text

    def package_dir(self, package: Package) -> Path:
        return self.root / package.locator.locator_hash

    def _read(self, package: Package) -> PackageMetadata | None:
        package_dir = self.package_dir(package)
        manifest_path = package_dir / "package.json"
        if not manifest_path.exists():
            return None
        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise MetadataLookupError(f"Unable to read {manifest_path}: {exc}") from exc
        if not isinstance(manifest, dict):
            raise MetadataLookupError(f"Unable to read {manifest_path}: expected a JSON object")
        license_text = read_license_text(package_dir) if self.with_license_text else ""
        return metadata_from_manifest(manifest, license_text)

    async def lookup(self, package: Package) -> PackageMetadata:
        metadata = await asyncio.to_thread(self._read, package)
        if metadata is not None:
            return metadata
        if self.fallback is not None:
            logger.debug("%s is not installed; asking fallback source", package.ident)
            return await self.fallback.lookup(package)
        raise MetadataLookupError(
            f"{package.ident} is not installed at {self.package_dir(package)}; "
            "run `npm install` or pass --online to query the registry."
        )
