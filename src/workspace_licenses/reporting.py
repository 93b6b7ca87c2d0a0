from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Sequence

from jinja2 import Environment

from .types import AuditEntry, DisclaimerEntry, LicenseEntry

MISSING_LICENSE_TEXT = "License text was not found in the package distribution."

env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)

DISCLAIMER_TEMPLATE = env.from_string(
    """\
THE FOLLOWING SETS FORTH ATTRIBUTION NOTICES FOR THIRD PARTY SOFTWARE THAT MAY BE CONTAINED IN PORTIONS OF THIS PRODUCT.
{% for group in groups %}

-----

The following software may be included in this product: {{ group.packages | join(", ") }}.
{% if group.urls %}
A copy of the source code may be downloaded from {{ group.urls | join(", ") }}.
{% endif %}
This software contains the following license and notice below:

{{ group.text }}
{% endfor %}
"""
)


def render_text_report(entries: Sequence[LicenseEntry]) -> str:
    if not entries:
        return ""

    lines: List[str] = []
    for index, entry in enumerate(entries):
        last = index == len(entries) - 1
        branch = "└─ " if last else "├─ "
        indent = "   " if last else "│  "
        lines.append(f"{branch}{entry.name}@{entry.version}")
        lines.append(f"{indent}├─ License: {entry.license_type}")
        lines.append(f"{indent}└─ URL: {entry.url}")
    return "\n".join(lines) + "\n"


def render_json(entries: Iterable[LicenseEntry]) -> str:
    return json.dumps([entry.as_dict() for entry in entries], indent=2) + "\n"


def render_license_audit_text(entries: Sequence[AuditEntry]) -> str:
    if not entries:
        return ""

    blocks = []
    for entry in entries:
        blocks.append(
            "\n".join(
                [
                    f"{entry.status.upper()} {entry.name}@{entry.version}",
                    f"  license: {entry.license_type}",
                    f"  url: {entry.url}",
                    f"  matchedAllowRule: {entry.matched_allow_rule or 'none'}",
                ]
            )
        )
    return "\n\n".join(blocks) + "\n"


def _disclaimer_groups(entries: Iterable[DisclaimerEntry]) -> List[dict]:
    groups: dict[str, dict] = {}
    for entry in entries:
        text = entry.license_text.strip()
        group = groups.setdefault(text, {"packages": [], "urls": [], "text": text or MISSING_LICENSE_TEXT})
        group["packages"].append(f"{entry.name}@{entry.version}")
        if entry.url and entry.url not in group["urls"]:
            group["urls"].append(entry.url)
    return list(groups.values())


def render_disclaimer_report(entries: Sequence[DisclaimerEntry]) -> str:
    """Group packages sharing identical license text into one notice each."""

    if not entries:
        return ""
    return DISCLAIMER_TEMPLATE.render(groups=_disclaimer_groups(entries))


def write_output(content: str, destination: Path | None) -> str:
    if destination:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content, encoding="utf-8")
    return content
