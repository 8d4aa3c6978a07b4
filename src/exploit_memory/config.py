"""YAML/dict config loader for exploit-memory.

Supports loading from a YAML file or a plain dict (for embedding in a
larger middleware config).  Every section is optional; anything left out
keeps its documented default.

Example YAML:

    exploit_memory:
      sanitize:
        redact_secrets: true
        remove_internal_paths: true
        max_length: 20000
      redactor:
        category_precedence: [private_key, rpc_credential, bearer_token]
        skip_categories: []
        allow_list:
          - "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
      sensitivity:
        financial_threshold: 1000000
        internal_roots: [/home/, /Users/]
        use_presidio: false
      reducers:
        top_k: 10
        max_summary_chars: 2000
      novelty:
        duplicate_threshold: 0.92
        similarity_threshold: 0.85
        penalties:
          reentrancy: 0.3
          oracle_manipulation: 0.2
"""

from __future__ import annotations
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .logging import get_logger
from .pipeline import MemoryPipeline
from .redactor import Redactor, RedactorConfig
from .reducers import ReducerConfig
from .sanitizer import SanitizeOptions
from .sensitivity import DEFAULT_FINANCIAL_THRESHOLD, DEFAULT_INTERNAL_ROOTS, ClassifierConfig
from .similarity import DEFAULT_DUPLICATE_THRESHOLD, DEFAULT_SIMILARITY_THRESHOLD, NoveltyConfig

log = get_logger("config")

_DEFAULTS: dict[str, dict[str, Any]] = {
    "sanitize": {
        "redact_secrets": True,
        "remove_internal_paths": True,
        "max_length": None,
    },
    "redactor": {
        "category_precedence": None,
        "skip_categories": [],
        "allow_list": [],
    },
    "sensitivity": {
        "financial_threshold": DEFAULT_FINANCIAL_THRESHOLD,
        "internal_roots": list(DEFAULT_INTERNAL_ROOTS),
        "use_presidio": False,
        "language": "en",
        "score_threshold": 0.5,
    },
    "reducers": {
        "top_k": 10,
        "max_summary_chars": 2000,
        "max_input_chars": 500_000,
        "max_items": 200,
    },
    "novelty": {
        "duplicate_threshold": DEFAULT_DUPLICATE_THRESHOLD,
        "similarity_threshold": DEFAULT_SIMILARITY_THRESHOLD,
        "penalties": {},
    },
}


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline).

    Returns every section with every option filled in.  Unknown sections
    or options raise ConfigError.  Normalizing an already-normalized dict
    returns an equal dict.
    """
    data = data or {}
    # Support nested under "exploit_memory" key or flat
    if "exploit_memory" in data:
        data = data["exploit_memory"] or {}
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping")

    unknown = set(data) - set(_DEFAULTS)
    if unknown:
        raise ConfigError(f"unknown config section(s): {', '.join(sorted(unknown))}")

    normalized: dict[str, dict[str, Any]] = {}
    for section, defaults in _DEFAULTS.items():
        given = data.get(section) or {}
        if not isinstance(given, dict):
            raise ConfigError(f"section {section!r} must be a mapping")
        extra = set(given) - set(defaults)
        if extra:
            raise ConfigError(f"unknown option(s) in {section!r}: {', '.join(sorted(extra))}")
        normalized[section] = {**defaults, **given}
    return normalized


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f))


def create_pipeline(config: dict[str, Any] | None = None) -> MemoryPipeline:
    """Create a fully configured pipeline from a config dict."""
    cfg = load_config(config)
    try:
        redactor_cfg = cfg["redactor"]
        sensitivity = cfg["sensitivity"]
        novelty = cfg["novelty"]
        pipeline = MemoryPipeline.create(
            redactor=Redactor(RedactorConfig(
                category_precedence=redactor_cfg["category_precedence"],
                skip_categories=set(redactor_cfg["skip_categories"]),
                allow_list=set(redactor_cfg["allow_list"]),
            )),
            sanitize=SanitizeOptions(**cfg["sanitize"]),
            classifier=ClassifierConfig(
                financial_threshold=sensitivity["financial_threshold"],
                internal_roots=tuple(sensitivity["internal_roots"]),
                use_presidio=sensitivity["use_presidio"],
                language=sensitivity["language"],
                score_threshold=sensitivity["score_threshold"],
            ),
            reducers=ReducerConfig(**cfg["reducers"]),
            novelty=NoveltyConfig(
                duplicate_threshold=novelty["duplicate_threshold"],
                similarity_threshold=novelty["similarity_threshold"],
                novelty_penalties=novelty["penalties"] or {},
            ),
        )
    except TypeError as exc:
        raise ConfigError(f"invalid config value: {exc}") from exc
    log.debug("pipeline created from config")
    return pipeline
