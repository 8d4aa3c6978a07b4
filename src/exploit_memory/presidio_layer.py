"""Optional Presidio NER layer for financial identifiers.

Regex covers dollar figures and token amounts; Presidio adds the
identifiers regex can't reliably pin down (IBANs, bank numbers, card
numbers with checksum validation, BTC addresses).  Uses spaCy under the
hood, so it is only loaded when the classifier asks for it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .logging import get_logger

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

log = get_logger("presidio")

# One analyzer per language, built on first use
_engines: dict[str, AnalyzerEngine] = {}

FINANCIAL_ENTITIES = [
    "CREDIT_CARD",
    "IBAN_CODE",
    "US_BANK_NUMBER",
    "CRYPTO",        # Bitcoin wallet addresses
]


@dataclass(frozen=True, slots=True)
class EntityHit:
    """A Presidio finding; the matched text itself is not kept."""
    entity_type: str
    start: int
    end: int
    score: float


def _get_engine(language: str = "en") -> AnalyzerEngine:
    """Return the cached analyzer for language, loading spaCy if needed."""
    engine = _engines.get(language)
    if engine is not None:
        return engine

    from presidio_analyzer import AnalyzerEngine
    from presidio_analyzer.nlp_engine import NlpEngineProvider

    log.debug("loading spaCy model %s_core_web_sm", language)
    nlp = NlpEngineProvider(nlp_configuration={
        "nlp_engine_name": "spacy",
        "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
    }).create_engine()
    engine = _engines[language] = AnalyzerEngine(nlp_engine=nlp, supported_languages=[language])
    return engine


def scan_financial_entities(
    text: str,
    *,
    language: str = "en",
    entities: list[str] | None = None,
    score_threshold: float = 0.5,
) -> list[EntityHit]:
    """Run Presidio over text, restricted to financial entity types."""
    engine = _get_engine(language)
    results = engine.analyze(
        text=text,
        language=language,
        entities=entities or FINANCIAL_ENTITIES,
        score_threshold=score_threshold,
    )
    hits = [EntityHit(r.entity_type, r.start, r.end, r.score) for r in results]
    return sorted(hits, key=lambda h: h.start)
