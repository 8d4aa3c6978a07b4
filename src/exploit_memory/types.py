"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable


class SecretCategory(str, Enum):
    """What kind of secret a recognizer found."""
    RPC_CREDENTIAL = "rpc_credential"
    PRIVATE_KEY = "private_key"
    BEARER_TOKEN = "bearer_token"
    CLOUD_CREDENTIAL = "cloud_credential"
    API_KEY = "api_key"
    GENERIC_SECRET = "generic_secret"


class SensitivityType(str, Enum):
    """Why a piece of content is risky to store."""
    CREDENTIALS = "credentials"
    PRIVATE_KEY = "private_key"
    FINANCIAL_DATA = "financial_data"
    INTERNAL_PATHS = "internal_paths"
    DATABASE_CREDENTIALS = "database_credentials"


@dataclass(frozen=True, slots=True)
class SecretMatch:
    """A single detected secret span."""
    category: SecretCategory
    start: int
    end: int
    text: str              # raw snippet, only used for masking
    recognizer: str        # e.g. "alchemy_url", "jwt", "env_assignment"

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class RedactionResult:
    """Result of redacting a string."""
    redacted_text: str
    count: int = 0
    categories: frozenset[SecretCategory] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        return {
            "redacted_text": self.redacted_text,
            "count": self.count,
            "categories": sorted(c.value for c in self.categories),
        }


@dataclass(frozen=True, slots=True)
class SensitivityReport:
    """Risk classification of a piece of text."""
    is_sensitive: bool
    matched_types: frozenset[SensitivityType] = frozenset()
    reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_sensitive": self.is_sensitive,
            "matched_types": sorted(t.value for t in self.matched_types),
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True, slots=True)
class Modification:
    """One change the sanitizer applied."""
    kind: str              # "internal_paths" | "secrets" | "truncated"
    count: int


@dataclass(frozen=True, slots=True)
class SanitizeOutcome:
    """Result of making content safe to persist."""
    final_text: str
    was_modified: bool
    modifications: tuple[Modification, ...] = ()
    sensitivity: SensitivityReport = field(
        default_factory=lambda: SensitivityReport(is_sensitive=False)
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_text": self.final_text,
            "was_modified": self.was_modified,
            "modifications": [{"kind": m.kind, "count": m.count} for m in self.modifications],
            "sensitivity": self.sensitivity.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ReductionResult:
    """Bounded digest of an artifact plus extracted structure."""
    summary: str
    should_store_raw: bool
    extracted_metadata: dict[str, Any] = field(default_factory=dict)
    kind: str = "generic"  # reducer that actually ran

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "should_store_raw": self.should_store_raw,
            "extracted_metadata": self.extracted_metadata,
            "kind": self.kind,
        }


@dataclass(frozen=True, slots=True)
class DuplicateCheckResult:
    """Outcome of comparing one vector against a candidate set."""
    is_duplicate: bool
    max_similarity: float
    novelty_score: float
    duplicate_of: Hashable | None = None   # list index or mapping key
    is_similar: bool = False               # inside the soft similarity band

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_duplicate": self.is_duplicate,
            "max_similarity": self.max_similarity,
            "novelty_score": self.novelty_score,
            "duplicate_of": self.duplicate_of,
            "is_similar": self.is_similar,
        }
