from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

ALLOWED = "allowed"
VIOLATION = "violation"


@dataclass
class LicenseEntry:
    name: str
    version: str
    license_type: str
    url: str

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "licenseType": self.license_type,
            "url": self.url,
        }

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.url)


@dataclass
class AuditEntry(LicenseEntry):
    status: str = VIOLATION
    matched_allow_rule: Optional[str] = None
    detected_license_tokens: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        payload = super().as_dict()
        payload.update(
            {
                "status": self.status,
                "matchedAllowRule": self.matched_allow_rule,
                "detectedLicenseTokens": list(self.detected_license_tokens),
            }
        )
        return payload


@dataclass
class DisclaimerEntry(LicenseEntry):
    license_text: str = ""

    def as_dict(self) -> dict:
        payload = super().as_dict()
        payload["licenseText"] = self.license_text
        return payload


@dataclass
class PackageMetadata:
    """What a metadata lookup reports for one package."""

    license_type: str
    url: str
    raw_repository: Any = None
    raw_homepage: Any = None
    license_text: str = ""


@dataclass
class DebugEntry:
    name: str
    version: str
    license_type: str
    raw_repository: Any
    raw_homepage: Any
    normalized_url: str
