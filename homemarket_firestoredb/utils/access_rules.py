"""
Collection access manifest derived from the shipped security rules.

The rules file is the authoritative source. This module only reads it, so the client-side
allow-list can never drift from what the server enforces.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, List, Tuple

from .logger import logger

RULES_PATH = Path(__file__).resolve().parent.parent / "rules" / "firestore.rules"

_MATCH_RE = re.compile(r"^\s*match\s+(\S+)\s*\{")
_ALLOW_RE = re.compile(r"^\s*allow\s+([a-z,\s]+):\s*if\s+(.+?);")
_COLLECTION_SEGMENT_RE = re.compile(r"^/([A-Za-z0-9_]+)/\{[A-Za-z0-9_=*]+\}$")
_DOCUMENTS_ROOT = "/databases/{database}/documents"
_READ_OPERATIONS = {"read", "get", "list"}

# Frame kinds on the block stack
_ROOT, _COLLECTION, _SUBCOLLECTION, _OTHER = "root", "collection", "subcollection", "other"


@dataclass
class CollectionRule:
    name: str
    read_conditions: List[str] = field(default_factory=list)
    subcollections: List[str] = field(default_factory=list)

    @property
    def readable(self) -> bool:
        return any(condition.strip() != "false" for condition in self.read_conditions)


@dataclass(frozen=True)
class AccessManifest:
    rules: Dict[str, CollectionRule]

    @property
    def allowed_collections(self) -> FrozenSet[str]:
        return frozenset(name for name, rule in self.rules.items() if rule.readable)

    @property
    def blocked_collections(self) -> FrozenSet[str]:
        return frozenset(name for name, rule in self.rules.items() if not rule.readable)

    def is_collection_allowed(self, collection_name: str) -> bool:
        # Sub-collection paths ("constructionProjects/abc/updates") are governed by their root collection
        root = collection_name.strip("/").split("/")[0]
        rule = self.rules.get(root)
        return bool(rule and rule.readable)


def _brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


def parse_rules(source: str) -> AccessManifest:
    """Extract top-level collection blocks and their read conditions from a rules source."""
    rules: Dict[str, CollectionRule] = {}
    stack: List[Tuple[str, str]] = []

    for raw_line in source.splitlines():
        line = raw_line.split("//", 1)[0]
        if not line.strip():
            continue

        match = _MATCH_RE.match(line)
        if match:
            pattern = match.group(1)
            segment = _COLLECTION_SEGMENT_RE.match(pattern)
            parent_kind, parent_name = stack[-1] if stack else (_OTHER, "")
            if pattern == _DOCUMENTS_ROOT:
                stack.append((_ROOT, ""))
            elif segment and parent_kind == _ROOT:
                name = segment.group(1)
                rules.setdefault(name, CollectionRule(name=name))
                stack.append((_COLLECTION, name))
            elif segment and parent_kind == _COLLECTION:
                rules[parent_name].subcollections.append(segment.group(1))
                stack.append((_SUBCOLLECTION, parent_name))
            else:
                stack.append((_OTHER, ""))
            # "{database}" style wildcards are balanced, anything beyond the block brace is not expected
            continue

        allow = _ALLOW_RE.match(line)
        if allow:
            kind, name = stack[-1] if stack else (_OTHER, "")
            operations = {op.strip() for op in allow.group(1).split(",")}
            if kind == _COLLECTION and operations & _READ_OPERATIONS:
                rules[name].read_conditions.append(allow.group(2))
            continue

        delta = _brace_delta(line)
        for _ in range(delta):
            stack.append((_OTHER, ""))
        for _ in range(-delta):
            if stack:
                stack.pop()

    return AccessManifest(rules=rules)


@lru_cache(maxsize=1)
def load_access_manifest(path: str = str(RULES_PATH)) -> AccessManifest:
    manifest = parse_rules(Path(path).read_text(encoding="utf-8"))
    logger.debug(
        f"🔒 Loaded access manifest: {len(manifest.allowed_collections)} allowed, {len(manifest.blocked_collections)} blocked"
    )
    return manifest


def is_collection_allowed(collection_name: str) -> bool:
    return load_access_manifest().is_collection_allowed(collection_name)
