"""Sanitizer — one call to make content safe to persist.

Order of operations, each independently switchable:

    1. internal path removal   (/home/alice/audit/src/Vault.sol -> [INTERNAL_PATH]/Vault.sol)
    2. secret redaction        (see redactor.py)
    3. sensitivity report      (always computed on the ORIGINAL text)
    4. length cap              (applied last, so it measures the sanitized text)
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Sequence

from .errors import ConfigError
from .logging import get_logger
from .redactor import Redactor
from .sensitivity import (
    DEFAULT_INTERNAL_ROOTS,
    ClassifierConfig,
    classify,
    internal_path_pattern,
)
from .types import Modification, SanitizeOutcome

log = get_logger("sanitizer")

TRUNCATION_MARKER = "\n...[truncated]"
INTERNAL_PATH_PLACEHOLDER = "[INTERNAL_PATH]"

_FILE_NAME = re.compile(r"^[\w.\-]+\.[A-Za-z0-9]{1,10}$")


@dataclass(frozen=True)
class SanitizeOptions:
    """What sanitize() is allowed to change."""
    redact_secrets: bool = True
    remove_internal_paths: bool = True
    max_length: int | None = None     # characters; None = no cap

    def __post_init__(self) -> None:
        if self.max_length is not None:
            if not isinstance(self.max_length, int) or isinstance(self.max_length, bool):
                raise ConfigError(f"max_length must be an integer, got {self.max_length!r}")
            if self.max_length < 0:
                raise ConfigError("max_length must be >= 0")


def remove_internal_paths(
    text: str,
    roots: Sequence[str] = DEFAULT_INTERNAL_ROOTS,
) -> tuple[str, int]:
    """Rewrite absolute paths under internal roots. Returns (text, count).

    The final component survives when it looks like a file name, so
    reports still say which file was involved.
    """
    pattern = internal_path_pattern(tuple(roots))
    if pattern is None or not text:
        return text, 0

    def _swap(m: re.Match) -> str:
        name = re.split(r"[/\\]", m.group().rstrip("/\\"))[-1]
        if _FILE_NAME.match(name):
            return f"{INTERNAL_PATH_PLACEHOLDER}/{name}"
        return INTERNAL_PATH_PLACEHOLDER

    return pattern.subn(_swap, text)


def truncate(text: str, max_length: int) -> tuple[str, int]:
    """Cap text at max_length characters, marker included. Returns (text, removed)."""
    if len(text) <= max_length:
        return text, 0
    if max_length <= len(TRUNCATION_MARKER):
        return text[:max_length], len(text) - max_length
    keep = max_length - len(TRUNCATION_MARKER)
    return text[:keep] + TRUNCATION_MARKER, len(text) - keep


def sanitize(
    content: str,
    options: SanitizeOptions | None = None,
    *,
    redactor: Redactor | None = None,
    classifier_config: ClassifierConfig | None = None,
) -> SanitizeOutcome:
    """Remove internal paths and secrets, classify, then cap length."""
    options = options or SanitizeOptions()
    classifier_config = classifier_config or ClassifierConfig()
    original = content if isinstance(content, str) else ("" if content is None else str(content))

    text = original
    modifications: list[Modification] = []

    if options.remove_internal_paths:
        text, count = remove_internal_paths(text, classifier_config.internal_roots)
        if count:
            modifications.append(Modification("internal_paths", count))

    if options.redact_secrets:
        result = (redactor or Redactor()).redact(text)
        text = result.redacted_text
        if result.count:
            modifications.append(Modification("secrets", result.count))

    sensitivity = classify(original, classifier_config)

    if options.max_length is not None:
        text, removed = truncate(text, options.max_length)
        if removed:
            modifications.append(Modification("truncated", removed))

    was_modified = text != original
    if was_modified:
        log.debug("sanitized content: %s", ", ".join(f"{m.kind}={m.count}" for m in modifications))
    return SanitizeOutcome(
        final_text=text,
        was_modified=was_modified,
        modifications=tuple(modifications),
        sensitivity=sensitivity,
    )
