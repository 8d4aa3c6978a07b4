"""Redactor — the main masking API.

Usage:
    from exploit_memory import Redactor, redact

    result = redact("RPC=https://eth-mainnet.g.alchemy.com/v2/abcdefghijklmnop1234")
    print(result.redacted_text)  # "RPC=https://eth-mainnet.g.alchemy.com[REDACTED:rpc_credential]"
    print(result.count)          # 1

    redactor = Redactor(RedactorConfig(allow_list={"test-token-not-secret"}))
    redactor.redact_payload({"args": ["--key", "sk-..."]})

Placeholders carry only the category.  There is no way back to the
original value: nothing is stored.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import ConfigError
from .logging import get_logger
from .patterns import (
    DEFAULT_WINDOW_OVERLAP,
    DEFAULT_WINDOW_SIZE,
    find_candidates,
    placeholder,
    resolve_overlaps,
)
from .types import RedactionResult, SecretCategory, SecretMatch

log = get_logger("redactor")


def _categories(values: Any, option: str) -> list[SecretCategory]:
    try:
        return [SecretCategory(v) for v in values]
    except ValueError as exc:
        raise ConfigError(f"{option}: {exc}") from exc


@dataclass
class RedactorConfig:
    """Configuration for the Redactor."""
    # Equal-length overlap tie-break; None = catalogue order
    category_precedence: tuple[SecretCategory, ...] | None = None
    # Categories to never mask
    skip_categories: set[SecretCategory] = field(default_factory=set)
    # Exact values that should NEVER be redacted (test fixtures, anvil keys)
    allow_list: set[str] = field(default_factory=set)
    custom_scanners: list[Callable[[str], list[SecretMatch]]] = field(default_factory=list)
    window_size: int = DEFAULT_WINDOW_SIZE
    window_overlap: int = DEFAULT_WINDOW_OVERLAP

    def __post_init__(self) -> None:
        if self.category_precedence is not None:
            self.category_precedence = tuple(
                _categories(self.category_precedence, "category_precedence")
            )
        self.skip_categories = set(_categories(self.skip_categories, "skip_categories"))
        self.allow_list = set(self.allow_list)
        if self.window_size <= 0:
            raise ConfigError("window_size must be positive")
        if not 0 <= self.window_overlap < self.window_size:
            raise ConfigError("window_overlap must be in [0, window_size)")


class Redactor:
    """Pattern-based secret redactor.

    Layer 1: the built-in recognizer catalogue
    Layer 2: custom scanners (user-provided callables)

    Stateless after init; one instance can serve any number of threads.
    """

    def __init__(self, config: RedactorConfig | None = None) -> None:
        self.config = config or RedactorConfig()

    def scan(self, text: str) -> list[SecretMatch]:
        """Return the non-overlapping secret spans that would be masked."""
        if not text:
            return []

        all_matches = find_candidates(
            text,
            window_size=self.config.window_size,
            window_overlap=self.config.window_overlap,
        )
        for scanner in self.config.custom_scanners:
            all_matches.extend(scanner(text))

        filtered = [
            m for m in all_matches
            if m.category not in self.config.skip_categories
            and m.text not in self.config.allow_list
        ]
        return resolve_overlaps(filtered, self.config.category_precedence)

    def redact(self, text: str) -> RedactionResult:
        """Mask every detected secret with its category placeholder."""
        matches = self.scan(text)
        if not matches:
            return RedactionResult(redacted_text=text)

        # Right-to-left keeps earlier offsets valid
        result = text
        for match in reversed(matches):
            result = result[:match.start] + placeholder(match.category) + result[match.end:]

        categories = frozenset(m.category for m in matches)
        log.debug(
            "redacted %d secret(s): %s",
            len(matches), ", ".join(sorted(c.value for c in categories)),
        )
        return RedactionResult(redacted_text=result, count=len(matches), categories=categories)

    def redact_payload(self, payload: Any) -> Any:
        """Redact every string inside nested dicts/lists/tuples.

        Returns a new structure; does NOT mutate the original.  Keys are
        left alone, non-string leaves pass through.
        """
        if isinstance(payload, str):
            return self.redact(payload).redacted_text
        if isinstance(payload, dict):
            return {k: self.redact_payload(v) for k, v in payload.items()}
        if isinstance(payload, list):
            return [self.redact_payload(v) for v in payload]
        if isinstance(payload, tuple):
            return tuple(self.redact_payload(v) for v in payload)
        return payload

    def contains_secrets(self, text: str) -> bool:
        return bool(self.scan(text))


_default = Redactor()


def redact(text: str) -> RedactionResult:
    """Redact with the default catalogue and settings."""
    return _default.redact(text)


def contains_secrets(text: str) -> bool:
    return _default.contains_secrets(text)
