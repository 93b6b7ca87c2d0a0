from __future__ import annotations

"""Audit declared package licenses against an allow-list.

License strings are parsed as boolean expressions::

    expr     := and_expr ("OR" and_expr)*
    and_expr := primary ("AND" primary)*
    primary  := "(" expr ")" | license

Keywords are case-insensitive. Consecutive words that are not keywords or
parentheses form one license token, so ``CC0 1.0`` and
``GPL-2.0 WITH Classpath-exception-2.0`` are each a single opaque token.
A string that does not parse is never an error: its fragments are reported
and the entry is treated as a violation.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from .types import ALLOWED, VIOLATION, AuditEntry, LicenseEntry

logger = logging.getLogger(__name__)

_LPAREN = "("
_RPAREN = ")"
_AND = "AND"
_OR = "OR"
_LICENSE = "LICENSE"

_FALLBACK_SEPARATORS = re.compile(r"\s+OR\s+|\s+AND\s+|\s+WITH\s+|[()]", re.IGNORECASE)


@dataclass(frozen=True)
class LicenseLeaf:
    value: str


@dataclass(frozen=True)
class AndNode:
    left: "LicenseNode"
    right: "LicenseNode"


@dataclass(frozen=True)
class OrNode:
    left: "LicenseNode"
    right: "LicenseNode"


LicenseNode = Union[LicenseLeaf, AndNode, OrNode]


@dataclass(frozen=True)
class ParseResult:
    tree: LicenseNode
    tokens: List[str]


def normalize_license_token(value: str) -> str:
    return " ".join(value.split()).upper()


def parse_allow_values(values: Iterable[str]) -> List[str]:
    """Flatten repeatable/comma-separated allow values, keeping first spellings."""

    seen: set[str] = set()
    unique: List[str] = []
    for value in values:
        for item in value.split(","):
            cleaned = item.strip()
            if not cleaned:
                continue
            normalized = normalize_license_token(cleaned)
            if normalized in seen:
                continue
            seen.add(normalized)
            unique.append(cleaned)
    return unique


def _lex(text: str) -> List[tuple[str, str]]:
    words = re.sub(r"([()])", r" \1 ", text).split()
    lexemes: List[tuple[str, str]] = []
    run: List[str] = []

    def _flush() -> None:
        if run:
            lexemes.append((_LICENSE, " ".join(run)))
            run.clear()

    for word in words:
        upper = word.upper()
        if word == "(":
            _flush()
            lexemes.append((_LPAREN, word))
        elif word == ")":
            _flush()
            lexemes.append((_RPAREN, word))
        elif upper in {_AND, _OR}:
            _flush()
            lexemes.append((upper, word))
        else:
            run.append(word)
    _flush()
    return lexemes


class _Parser:
    def __init__(self, lexemes: List[tuple[str, str]]) -> None:
        self.lexemes = lexemes
        self.position = 0
        self.leaves: List[str] = []

    def _peek(self) -> Optional[str]:
        if self.position < len(self.lexemes):
            return self.lexemes[self.position][0]
        return None

    def parse(self) -> Optional[LicenseNode]:
        tree = self._expr()
        if tree is None or self.position != len(self.lexemes):
            return None
        return tree

    def _expr(self) -> Optional[LicenseNode]:
        left = self._and_expr()
        if left is None:
            return None
        while self._peek() == _OR:
            self.position += 1
            right = self._and_expr()
            if right is None:
                return None
            left = OrNode(left, right)
        return left

    def _and_expr(self) -> Optional[LicenseNode]:
        left = self._primary()
        if left is None:
            return None
        while self._peek() == _AND:
            self.position += 1
            right = self._primary()
            if right is None:
                return None
            left = AndNode(left, right)
        return left

    def _primary(self) -> Optional[LicenseNode]:
        kind = self._peek()
        if kind == _LPAREN:
            self.position += 1
            inner = self._expr()
            if inner is None or self._peek() != _RPAREN:
                return None
            self.position += 1
            return inner
        if kind == _LICENSE:
            value = self.lexemes[self.position][1]
            self.position += 1
            self.leaves.append(value)
            return LicenseLeaf(value)
        return None


def _unique_tokens(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    unique: List[str] = []
    for value in values:
        normalized = normalize_license_token(value)
        if normalized in seen:
            continue
        seen.add(normalized)
        unique.append(value)
    return unique


def parse_license_expression(text: str) -> ParseResult | None:
    """Parse ``text``; ``None`` means the expression is malformed or empty."""

    parser = _Parser(_lex(text))
    tree = parser.parse()
    if tree is None:
        return None
    return ParseResult(tree=tree, tokens=_unique_tokens(parser.leaves))


def fallback_license_tokens(text: str) -> List[str]:
    fragments = (fragment.strip() for fragment in _FALLBACK_SEPARATORS.split(text))
    return [fragment for fragment in fragments if fragment]


def evaluate_license_tree(node: LicenseNode, allowed: dict[str, str]) -> Optional[str]:
    """Return the allow rule satisfying ``node``, or ``None``.

    ``AND`` reports its left operand's rule when both sides pass.
    """

    if isinstance(node, LicenseLeaf):
        return allowed.get(normalize_license_token(node.value))
    if isinstance(node, AndNode):
        left = evaluate_license_tree(node.left, allowed)
        if left is None:
            return None
        if evaluate_license_tree(node.right, allowed) is None:
            return None
        return left
    left = evaluate_license_tree(node.left, allowed)
    if left is not None:
        return left
    return evaluate_license_tree(node.right, allowed)


def _audit_entry(entry: LicenseEntry, allowed: dict[str, str]) -> AuditEntry:
    raw = (entry.license_type or "").strip()
    matched: Optional[str] = None
    tokens: List[str] = []

    if raw:
        parsed = parse_license_expression(raw)
        if parsed is None:
            logger.debug("Unparseable license expression for %s@%s: %r", entry.name, entry.version, raw)
            tokens = fallback_license_tokens(raw)
        else:
            tokens = parsed.tokens
            matched = evaluate_license_tree(parsed.tree, allowed)

    return AuditEntry(
        name=entry.name,
        version=entry.version,
        license_type=entry.license_type,
        url=entry.url,
        status=ALLOWED if matched is not None else VIOLATION,
        matched_allow_rule=matched,
        detected_license_tokens=tokens,
    )


def audit_license_entries(entries: Iterable[LicenseEntry], allow_rules: Iterable[str]) -> List[AuditEntry]:
    allowed: dict[str, str] = {}
    for rule in allow_rules:
        allowed.setdefault(normalize_license_token(rule), rule)

    return [_audit_entry(entry, allowed) for entry in entries]


def get_audit_violations(entries: Iterable[AuditEntry]) -> List[AuditEntry]:
    return [entry for entry in entries if entry.status == VIOLATION]


def has_audit_violations(entries: Iterable[AuditEntry]) -> bool:
    return any(entry.status == VIOLATION for entry in entries)
