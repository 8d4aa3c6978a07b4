"""exploit-memory — sanitize, reduce and deduplicate what security research agents remember."""

from .redactor import Redactor, RedactorConfig, contains_secrets, redact
from .sensitivity import ClassifierConfig, classify
from .sanitizer import SanitizeOptions, sanitize
from .reducers import ArtifactKind, ReducerConfig, available_kinds, reduce_by_kind
from .similarity import (
    NoveltyConfig,
    calculate_diversity,
    calculate_novelty_score,
    check_duplicate,
    cosine_similarity,
    filter_duplicates,
    find_most_similar,
)
from .pipeline import MemoryPipeline, PipelineDecision, PreparedArtifact
from .config import create_pipeline, load_config, load_from_yaml
from .errors import ConfigError, DimensionMismatchError, ExploitMemoryError
from .types import (
    DuplicateCheckResult,
    RedactionResult,
    ReductionResult,
    SanitizeOutcome,
    SecretCategory,
    SecretMatch,
    SensitivityReport,
    SensitivityType,
)

__all__ = [
    "Redactor", "RedactorConfig", "redact", "contains_secrets",
    "ClassifierConfig", "classify",
    "SanitizeOptions", "sanitize",
    "ArtifactKind", "ReducerConfig", "available_kinds", "reduce_by_kind",
    "NoveltyConfig", "cosine_similarity", "find_most_similar", "check_duplicate",
    "calculate_novelty_score", "filter_duplicates", "calculate_diversity",
    "MemoryPipeline", "PreparedArtifact", "PipelineDecision",
    "create_pipeline", "load_config", "load_from_yaml",
    "ExploitMemoryError", "ConfigError", "DimensionMismatchError",
    "SecretCategory", "SensitivityType", "SecretMatch", "RedactionResult",
    "SensitivityReport", "SanitizeOutcome", "ReductionResult", "DuplicateCheckResult",
]
__version__ = "0.1.0"
