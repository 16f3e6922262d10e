"""
API generations of the service.

Both generations speak the same protocol; they differ only in the URL path
segment used for each target kind and in whether user secrets may be sent.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from easybeam.core import config


@dataclass(frozen=True)
class ApiGeneration:
    name: str
    kinds: FrozenSet[str]
    accepts_secrets: bool

    def check_kind(self, kind: str) -> str:
        kind = (kind or "").strip().lower()
        if kind not in self.kinds:
            allowed = ", ".join(sorted(self.kinds))
            raise ValueError(f"unknown target kind {kind!r} for {self.name} API (expected one of: {allowed})")
        return kind


CURRENT = ApiGeneration(name="current", kinds=frozenset({"prompt", "agent"}), accepts_secrets=True)
LEGACY = ApiGeneration(name="legacy", kinds=frozenset({"portal", "workflow"}), accepts_secrets=False)

GENERATIONS: Dict[str, ApiGeneration] = {g.name: g for g in (CURRENT, LEGACY)}


def get_generation(name: Optional[str] = None) -> ApiGeneration:
    key = (name or config.API_GENERATION).strip().lower()
    try:
        return GENERATIONS[key]
    except KeyError:
        raise ValueError(f"Unknown API generation: {key}") from None
