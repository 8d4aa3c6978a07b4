"""Similarity & novelty engine — pure numeric functions over embeddings.

Vectors come from the caller (any float sequence or numpy array); this
module never calls a provider and never keeps them.  Candidate sets are
either a sequence (results refer to list indices) or a mapping (results
refer to its keys).

Every threshold is passed in explicitly, usually via ``NoveltyConfig``.

Usage:
    config = NoveltyConfig(novelty_penalties={"reentrancy": 0.5})
    result = check_duplicate(new_vec, {"h-17": old_vec}, config)
    if result.is_duplicate:
        print("same finding as", result.duplicate_of)
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Hashable, Sequence, Union

import numpy as np

from .errors import ConfigError, DimensionMismatchError
from .logging import get_logger
from .types import DuplicateCheckResult

log = get_logger("similarity")

Vector = Union[Sequence[float], np.ndarray]
Candidates = Union[Sequence[Vector], Mapping[Hashable, Vector]]

DEFAULT_DUPLICATE_THRESHOLD = 0.92
DEFAULT_SIMILARITY_THRESHOLD = 0.85


@dataclass(frozen=True)
class NoveltyConfig:
    """Duplicate / similarity thresholds and per-attack-pattern penalties."""
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    # attack pattern label -> fraction of novelty removed, e.g. {"reentrancy": 0.3}
    novelty_penalties: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("duplicate_threshold", "similarity_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be in [0, 1], got {value!r}")
        if self.duplicate_threshold < self.similarity_threshold:
            raise ConfigError("duplicate_threshold must be >= similarity_threshold")
        penalties: dict[str, float] = {}
        for label, penalty in dict(self.novelty_penalties).items():
            try:
                penalties[str(label)] = float(penalty)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"penalty for {label!r} must be a number, got {penalty!r}") from exc
            if not 0.0 <= penalties[str(label)] <= 1.0:
                raise ConfigError(f"penalty for {label!r} must be in [0, 1], got {penalty!r}")
        object.__setattr__(self, "novelty_penalties", MappingProxyType(penalties))

    def penalty_for(self, attack_pattern: str | None) -> float:
        """Configured penalty, or 0.0 for unknown/absent labels."""
        if attack_pattern is None:
            return 0.0
        return float(self.novelty_penalties.get(attack_pattern, 0.0))


def _as_vector(v: Vector) -> np.ndarray:
    return np.asarray(v, dtype=np.float64).reshape(-1)


def _unpack(candidates: Candidates) -> tuple[list[Hashable], list[np.ndarray]]:
    if isinstance(candidates, Mapping):
        return list(candidates.keys()), [_as_vector(v) for v in candidates.values()]
    vectors = [_as_vector(v) for v in candidates]
    return list(range(len(vectors))), vectors


def _stack(vectors: list[np.ndarray], dim: int) -> np.ndarray:
    for v in vectors:
        if v.shape[0] != dim:
            raise DimensionMismatchError(dim, v.shape[0])
    if not vectors:
        return np.empty((0, dim))
    return np.vstack(vectors)


def _bounded(scores: Any) -> Any:
    # NaN or infinite components make a score meaningless; count it as unrelated
    return np.clip(np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0), -1.0, 1.0)


def _scores(query: Vector, candidates: Candidates) -> tuple[list[Hashable], np.ndarray]:
    """Cosine similarity of query against every candidate, in input order."""
    q = _as_vector(query)
    refs, vectors = _unpack(candidates)
    matrix = _stack(vectors, q.shape[0])
    if not refs:
        return refs, np.empty(0)

    q_norm = np.linalg.norm(q)
    norms = np.linalg.norm(matrix, axis=1)
    if q_norm == 0:
        return refs, np.zeros(len(refs))
    dots = matrix @ q
    denom = norms * q_norm
    scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom != 0)
    return refs, _bounded(scores)


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Normalized dot product in [-1, 1]; 0.0 when either vector is all zeros."""
    va, vb = _as_vector(a), _as_vector(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatchError(va.shape[0], vb.shape[0])
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(_bounded(np.dot(va, vb) / (norm_a * norm_b)))


def similarity_matrix(vectors: Sequence[Vector]) -> np.ndarray:
    """Pairwise cosine similarities; rows/cols of zero vectors are 0."""
    arrays = [_as_vector(v) for v in vectors]
    if not arrays:
        return np.empty((0, 0))
    matrix = _stack(arrays, arrays[0].shape[0])
    norms = np.linalg.norm(matrix, axis=1)
    gram = matrix @ matrix.T
    denom = np.outer(norms, norms)
    sims = np.divide(gram, denom, out=np.zeros_like(gram), where=denom != 0)
    return _bounded(sims)


def find_most_similar(
    query: Vector,
    candidates: Candidates,
    k: int,
    min_threshold: float,
) -> list[tuple[Hashable, float]]:
    """Top-k candidates by descending similarity, filtered to >= min_threshold.

    Ties keep the candidates' input order.
    """
    refs, scores = _scores(query, candidates)
    if k <= 0 or not refs:
        return []
    order = sorted(range(len(refs)), key=lambda i: -scores[i])
    hits = [(refs[i], float(scores[i])) for i in order if scores[i] >= min_threshold]
    return hits[:k]


def check_duplicate(
    query: Vector,
    candidates: Candidates,
    config: NoveltyConfig,
) -> DuplicateCheckResult:
    """Compare query against candidates and decide whether it is a duplicate."""
    refs, scores = _scores(query, candidates)
    if not refs:
        return DuplicateCheckResult(is_duplicate=False, max_similarity=0.0, novelty_score=1.0)

    best = int(np.argmax(scores))       # first maximum wins
    max_similarity = min(max(float(scores[best]), 0.0), 1.0)
    is_duplicate = max_similarity >= config.duplicate_threshold
    return DuplicateCheckResult(
        is_duplicate=is_duplicate,
        max_similarity=max_similarity,
        novelty_score=1.0 - max_similarity,
        duplicate_of=refs[best] if is_duplicate else None,
        is_similar=max_similarity >= config.similarity_threshold,
    )


def calculate_novelty_score(
    vector: Vector,
    existing: Candidates,
    attack_pattern: str | None,
    config: NoveltyConfig,
) -> float:
    """1 - max similarity, scaled down by the attack pattern's penalty."""
    base = check_duplicate(vector, existing, config).novelty_score
    score = base * (1.0 - config.penalty_for(attack_pattern))
    return min(max(score, 0.0), 1.0)


def filter_duplicates(
    candidates: Sequence[tuple[Any, Vector]],
    existing: Candidates,
    config: NoveltyConfig,
) -> list[tuple[Any, float]]:
    """Keep candidates that duplicate neither existing vectors nor earlier survivors.

    Processed in input order: an earlier candidate can suppress a later
    one, never the reverse.  Returns (item, novelty_score) pairs.
    """
    _, pool = _unpack(existing)
    kept: list[tuple[Any, float]] = []
    for item, vector in candidates:
        result = check_duplicate(vector, pool, config)
        if result.is_duplicate:
            log.debug("dropping duplicate candidate (similarity %.3f)", result.max_similarity)
            continue
        kept.append((item, result.novelty_score))
        pool.append(_as_vector(vector))
    return kept


def calculate_diversity(vectors: Sequence[Vector]) -> float:
    """One minus the mean pairwise cosine similarity; 0.0 for fewer than two vectors."""
    if len(vectors) < 2:
        return 0.0
    sims = similarity_matrix(vectors)
    upper = sims[np.triu_indices(len(vectors), k=1)]
    return max(0.0, 1.0 - float(upper.mean()))
