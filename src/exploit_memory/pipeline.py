"""Pipeline facade — what the tool-wrapping middleware calls.

sanitize -> reduce -> (caller embeds) -> dedup check

Usage:
    pipeline = MemoryPipeline.create(novelty=NoveltyConfig(duplicate_threshold=0.9))

    artifact = pipeline.prepare(forge_output, "forge_logs")
    vector = provider.embed(artifact.reduction.summary)      # caller-owned
    decision = pipeline.evaluate(artifact, vector, stored_vectors, attack_pattern="reentrancy")
    if decision.should_persist:
        store.save(artifact.to_dict(), vector)

Or in one go, handing over the embedding function:

    decision = pipeline.process(forge_output, "forge_logs", provider.embed, stored_vectors)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from .logging import get_logger
from .reducers import ReducerConfig, coerce_text, normalize_kind, reduce_by_kind
from .redactor import Redactor
from .sanitizer import SanitizeOptions, sanitize
from .sensitivity import ClassifierConfig
from .similarity import (
    Candidates,
    NoveltyConfig,
    Vector,
    calculate_novelty_score,
    check_duplicate,
    filter_duplicates,
)
from .types import DuplicateCheckResult, ReductionResult, SanitizeOutcome

log = get_logger("pipeline")

EmbedFn = Callable[[str], Sequence[float]]


@dataclass(frozen=True, slots=True)
class PreparedArtifact:
    """Sanitized and reduced content, ready to embed and store."""
    kind: str
    sanitized: SanitizeOutcome
    reduction: ReductionResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "sanitized": self.sanitized.to_dict(),
            "reduction": self.reduction.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class PipelineDecision:
    """Dedup verdict for one prepared artifact."""
    artifact: PreparedArtifact
    duplicate: DuplicateCheckResult
    novelty_score: float          # penalty-adjusted
    should_persist: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact": self.artifact.to_dict(),
            "duplicate": self.duplicate.to_dict(),
            "novelty_score": self.novelty_score,
            "should_persist": self.should_persist,
        }


@dataclass
class MemoryPipeline:
    """Sits between an agent's raw output and the memory service."""

    redactor: Redactor = field(default_factory=Redactor)
    sanitize_options: SanitizeOptions = field(default_factory=SanitizeOptions)
    classifier_config: ClassifierConfig = field(default_factory=ClassifierConfig)
    reducer_config: ReducerConfig = field(default_factory=ReducerConfig)
    novelty_config: NoveltyConfig = field(default_factory=NoveltyConfig)

    @classmethod
    def create(
        cls,
        *,
        redactor: Redactor | None = None,
        sanitize: SanitizeOptions | None = None,
        classifier: ClassifierConfig | None = None,
        reducers: ReducerConfig | None = None,
        novelty: NoveltyConfig | None = None,
    ) -> "MemoryPipeline":
        """Factory. Any part left out uses its documented defaults."""
        return cls(
            redactor=redactor or Redactor(),
            sanitize_options=sanitize or SanitizeOptions(),
            classifier_config=classifier or ClassifierConfig(),
            reducer_config=reducers or ReducerConfig(),
            novelty_config=novelty or NoveltyConfig(),
        )

    def prepare(self, content: Any, kind: str = "generic") -> PreparedArtifact:
        """Sanitize content, then reduce the sanitized text by kind."""
        text = coerce_text(content)
        sanitized = sanitize(
            text,
            self.sanitize_options,
            redactor=self.redactor,
            classifier_config=self.classifier_config,
        )
        reduction = reduce_by_kind(kind, sanitized.final_text, self.reducer_config)
        return PreparedArtifact(kind=normalize_kind(kind), sanitized=sanitized, reduction=reduction)

    def evaluate(
        self,
        artifact: PreparedArtifact,
        vector: Vector,
        existing: Candidates,
        attack_pattern: str | None = None,
    ) -> PipelineDecision:
        """Decide duplicate/novel for an artifact whose embedding is vector."""
        duplicate = check_duplicate(vector, existing, self.novelty_config)
        novelty = calculate_novelty_score(vector, existing, attack_pattern, self.novelty_config)
        if duplicate.is_duplicate:
            log.info(
                "%s artifact duplicates %r (similarity %.3f)",
                artifact.kind, duplicate.duplicate_of, duplicate.max_similarity,
            )
        return PipelineDecision(
            artifact=artifact,
            duplicate=duplicate,
            novelty_score=novelty,
            should_persist=not duplicate.is_duplicate,
        )

    def process(
        self,
        content: Any,
        kind: str,
        embed: EmbedFn,
        existing: Candidates,
        attack_pattern: str | None = None,
    ) -> PipelineDecision:
        """prepare() + embed the summary + evaluate()."""
        artifact = self.prepare(content, kind)
        vector = embed(artifact.reduction.summary)
        return self.evaluate(artifact, vector, existing, attack_pattern)

    def filter_batch(
        self,
        items: Iterable[tuple[str, Any]],
        embed: EmbedFn,
        existing: Candidates,
    ) -> list[tuple[PreparedArtifact, float]]:
        """Prepare (kind, content) pairs and drop duplicates, including within the batch."""
        prepared = [self.prepare(content, kind) for kind, content in items]
        candidates = [(artifact, embed(artifact.reduction.summary)) for artifact in prepared]
        kept = filter_duplicates(candidates, existing, self.novelty_config)
        log.debug("batch: kept %d of %d artifacts", len(kept), len(prepared))
        return kept
