"""Secret taxonomy — ordered regex recognizers for credentials.

Recognizers are listed most-specific first: private keys, provider RPC
URLs, bearer tokens, cloud and provider API keys, and only then the
generic ``KEY=value`` shapes.  The catalogue order doubles as the
tie-break when two recognizers claim a span of the same length.

A recognizer may name a ``secret`` group; only that span is masked, so
``PRIVATE_KEY=0xabc...`` keeps its key name.  Every permissive value
group refuses to start on a placeholder, which keeps redaction
idempotent.
"""

from __future__ import annotations
import re
from typing import Iterable, Iterator, Sequence

from .types import SecretCategory, SecretMatch

PLACEHOLDER_PREFIX = "[REDACTED:"
PLACEHOLDER_FMT = PLACEHOLDER_PREFIX + "{category}]"

# Scanning happens over windows so no single regex call sees unbounded input.
# The overlap must exceed the longest secret we expect (PEM blocks).
DEFAULT_WINDOW_SIZE = 64 * 1024
DEFAULT_WINDOW_OVERLAP = 12 * 1024

_NOT_PLACEHOLDER = r"(?!\[REDACTED:)"

_RPC_HOSTS = (
    r"alchemy\.com|alchemyapi\.io|infura\.io|quiknode\.pro|ankr\.com|"
    r"chainstack\.com|blastapi\.io|getblock\.io|drpc\.org|tenderly\.co"
)

# Each recognizer: (category, name, compiled_regex)
_PATTERNS: list[tuple[SecretCategory, str, re.Pattern]] = [
    # PEM-encoded private keys
    (SecretCategory.PRIVATE_KEY, "pem_private_key", re.compile(
        r"-----BEGIN (?:[A-Z0-9]+ )*PRIVATE KEY-----[\s\S]{1,8000}?"
        r"-----END (?:[A-Z0-9]+ )*PRIVATE KEY-----"
    )),

    # 32-byte hex only counts when a key-ish name sits on the same line;
    # bare 64-hex strings are tx hashes and storage slots.
    (SecretCategory.PRIVATE_KEY, "hex_private_key", re.compile(
        r"(?<!\[REDACTED:)(?i:(?:private|priv|secret|signer|deployer|wallet|owner)[_\- ]?key|\bpk\b)"
        r"[^\n]{0,40}?(?<![0-9A-Za-z])"
        r"(?P<secret>(?:0x)?[0-9a-fA-F]{64})(?![0-9A-Za-z])"
    )),

    # BIP-39 style mnemonics
    (SecretCategory.PRIVATE_KEY, "mnemonic", re.compile(
        r"(?i:mnemonic|seed[_\- ]?phrase|recovery[_\- ]?phrase)[\"']?[ \t]*[:=][ \t]*[\"']?"
        r"(?P<secret>(?:[a-z]+[ \t]+){11,23}[a-z]+)"
    )),

    # Provider RPC endpoints carry the API key in the path; the host stays.
    (SecretCategory.RPC_CREDENTIAL, "rpc_provider_url", re.compile(
        r"(?:https?|wss?)://[A-Za-z0-9.\-]{0,128}(?:" + _RPC_HOSTS + r")(?::\d{1,5})?"
        r"(?P<secret>/(?:[A-Za-z0-9_\-.~%]{1,128}/){0,8}?[A-Za-z0-9_\-]{16,}"
        r"[^\s\"'<>`]{0,256})"
    )),

    # JWTs (header.payload.signature)
    (SecretCategory.BEARER_TOKEN, "jwt", re.compile(
        r"\beyJ[A-Za-z0-9_\-]{8,}\.eyJ[A-Za-z0-9_\-]{8,}\.[A-Za-z0-9_\-]{8,}"
    )),

    # Authorization: Bearer <anything token-shaped>
    (SecretCategory.BEARER_TOKEN, "bearer_header", re.compile(
        r"(?i:\bbearer)\s+(?P<secret>" + _NOT_PLACEHOLDER + r"[A-Za-z0-9\-._~+/]{8,}=*)"
    )),

    (SecretCategory.BEARER_TOKEN, "basic_auth_header", re.compile(
        r"(?i:authorization)[\"']?\s*[:=]\s*[\"']?(?i:basic|token)\s+"
        r"(?P<secret>" + _NOT_PLACEHOLDER + r"[A-Za-z0-9+/=._\-]{8,})"
    )),

    # AWS access key id
    (SecretCategory.CLOUD_CREDENTIAL, "aws_access_key_id", re.compile(
        r"(?<![A-Z0-9])(?:AKIA|ASIA|AGPA|AIDA|AROA|ANPA|ANVA)[A-Z0-9]{16}(?![A-Z0-9])"
    )),

    (SecretCategory.CLOUD_CREDENTIAL, "aws_secret_access_key", re.compile(
        r"(?i:aws_?secret_?access_?key|aws_?secret)[\"']?\s*[:=]\s*[\"']?"
        r"(?P<secret>[A-Za-z0-9/+=]{40})(?![A-Za-z0-9/+=])"
    )),

    (SecretCategory.CLOUD_CREDENTIAL, "google_api_key", re.compile(
        r"\bAIza[0-9A-Za-z\-_]{35}(?![0-9A-Za-z\-_])"
    )),

    (SecretCategory.CLOUD_CREDENTIAL, "gcp_private_key_id", re.compile(
        r"\"private_key_id\"\s*:\s*\"(?P<secret>[0-9a-f]{40})\""
    )),

    (SecretCategory.CLOUD_CREDENTIAL, "azure_account_key", re.compile(
        r"(?i:accountkey)=(?P<secret>[A-Za-z0-9+/=]{40,})"
    )),

    # Provider-prefixed API keys
    (SecretCategory.API_KEY, "anthropic_key", re.compile(
        r"\bsk-ant-[A-Za-z0-9_\-]{20,}"
    )),

    (SecretCategory.API_KEY, "openai_key", re.compile(
        r"\bsk-(?:proj-)?[A-Za-z0-9_\-]{20,}"
    )),

    (SecretCategory.API_KEY, "github_token", re.compile(
        r"\b(?:gh[pousr]_[A-Za-z0-9]{36,}|github_pat_[A-Za-z0-9_]{22,})"
    )),

    (SecretCategory.API_KEY, "slack_token", re.compile(
        r"\bxox[abprs]-[A-Za-z0-9\-]{10,}"
    )),

    # Keys passed as URL query parameters (block explorers, gateways)
    (SecretCategory.API_KEY, "url_query_key", re.compile(
        r"[?&](?i:api[_\-]?key|apikey|access[_\-]?token|token|key|secret)="
        r"(?P<secret>" + _NOT_PLACEHOLDER + r"[^\s&\"'#<>]{8,})"
    )),

    # .env / shell style: UPPER_CASE name at line start
    (SecretCategory.GENERIC_SECRET, "env_assignment", re.compile(
        r"(?m)^[ \t]*(?:export[ \t]+)?[A-Z0-9_]{0,40}"
        r"(?:API_KEY|APIKEY|SECRET|TOKEN|PASSWORD|PASSWD|PRIVATE_KEY|AUTH_KEY|ACCESS_KEY)"
        r"[A-Z0-9_]{0,40}[ \t]*=[ \t]*[\"']?"
        r"(?P<secret>" + _NOT_PLACEHOLDER + r"(?=[^\s\"']*[A-Za-z])[^\s\"']{8,})"
    )),

    # Quoted assignments in code / JSON: password = "....", "apiKey": "...."
    (SecretCategory.GENERIC_SECRET, "quoted_assignment", re.compile(
        r"(?i:[A-Za-z0-9_\-]{0,40}(?:api[_\-]?key|secret|token|password|passwd|pwd|credential)s?)"
        r"[\"']?\s*[:=]\s*(?P<q>[\"'])"
        r"(?!0x[0-9a-fA-F]{40}[\"'])(?!0x[0-9a-fA-F]{64}[\"'])"
        r"(?P<secret>" + _NOT_PLACEHOLDER + r"[^\"'\s]{8,})(?P=q)"
    )),
]

_RECOGNIZER_ORDER: dict[str, int] = {name: i for i, (_, name, _) in enumerate(_PATTERNS)}

# Once a context recognizer fires, further values of the same shape on the
# rest of that line are secrets too ("private keys: 0xA.., 0xB..").
_LINE_FOLLOWERS: dict[str, re.Pattern] = {
    "hex_private_key": re.compile(r"(?<![0-9A-Za-z])(?:0x)?[0-9a-fA-F]{64}(?![0-9A-Za-z])"),
}


def recognizers() -> list[tuple[SecretCategory, str]]:
    """The catalogue as (category, recognizer name) pairs, in precedence order."""
    return [(category, name) for category, name, _ in _PATTERNS]


def placeholder(category: SecretCategory) -> str:
    """Fixed replacement text for a category; never any part of the secret."""
    return PLACEHOLDER_FMT.format(category=category.value)


def _windows(text: str, size: int, overlap: int) -> Iterator[tuple[int, str]]:
    """Yield (offset, chunk) pairs covering text with overlapping windows."""
    if len(text) <= size:
        yield 0, text
        return
    step = size - overlap
    start = 0
    while True:
        yield start, text[start:start + size]
        if start + size >= len(text):
            return
        start += step


def _spans(name: str, m: re.Match, chunk: str) -> list[tuple[int, int]]:
    spans = [m.span("secret") if "secret" in m.re.groupindex else m.span()]
    follower = _LINE_FOLLOWERS.get(name)
    if follower is not None:
        line_end = chunk.find("\n", m.end())
        if line_end < 0:
            line_end = len(chunk)
        spans.extend(f.span() for f in follower.finditer(chunk, m.end(), line_end))
    return spans


def find_candidates(
    text: str,
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    window_overlap: int = DEFAULT_WINDOW_OVERLAP,
) -> list[SecretMatch]:
    """Run every recognizer over text. Returns possibly-overlapping matches."""
    seen: set[tuple[int, int, str]] = set()
    matches: list[SecretMatch] = []
    for offset, chunk in _windows(text, window_size, window_overlap):
        for category, name, pattern in _PATTERNS:
            for m in pattern.finditer(chunk):
                for start, end in _spans(name, m, chunk):
                    if start >= end:
                        continue
                    key = (offset + start, offset + end, name)
                    if key in seen:
                        continue
                    seen.add(key)
                    matches.append(SecretMatch(
                        category=category,
                        start=offset + start,
                        end=offset + end,
                        text=chunk[start:end],
                        recognizer=name,
                    ))
    return matches


def resolve_overlaps(
    matches: Iterable[SecretMatch],
    precedence: Sequence[SecretCategory] | None = None,
) -> list[SecretMatch]:
    """Keep non-overlapping matches.

    At a given start offset the longest match wins; equal-length ties go
    to the category listed first in ``precedence`` (catalogue order when
    no precedence is given), then to the earlier recognizer.
    """
    rank = {category: i for i, category in enumerate(precedence or ())}
    fallback = len(rank)

    def _key(m: SecretMatch) -> tuple[int, int, int, int]:
        return (
            m.start,
            -m.length,
            rank.get(m.category, fallback),
            _RECOGNIZER_ORDER.get(m.recognizer, len(_RECOGNIZER_ORDER)),
        )

    taken: list[SecretMatch] = []
    last_end = -1
    for m in sorted(matches, key=_key):
        if m.start >= last_end:
            taken.append(m)
            last_end = m.end
    return taken


def scan_secrets(
    text: str,
    *,
    precedence: Sequence[SecretCategory] | None = None,
    window_size: int = DEFAULT_WINDOW_SIZE,
    window_overlap: int = DEFAULT_WINDOW_OVERLAP,
) -> list[SecretMatch]:
    """Run all recognizers against text. Returns non-overlapping matches."""
    if not text:
        return []
    candidates = find_candidates(text, window_size=window_size, window_overlap=window_overlap)
    return resolve_overlaps(candidates, precedence)
