"""Tests for the MemoryPipeline facade — sanitize, reduce, dedup."""

import sys, os, json
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from exploit_memory import MemoryPipeline, NoveltyConfig, SanitizeOptions, SensitivityType

FORGE_OUTPUT = (
    "[PASS] testExploit (2.1s)\n"
    "Profit: 50000 USDC\n"
    "Authorization: Bearer abcdefghijklmnop\n"
)


def letter_embed(text):
    """Deterministic stand-in for an embedding provider: letter counts."""
    vec = [0.0] * 26
    for ch in text.lower():
        if "a" <= ch <= "z":
            vec[ord(ch) - ord("a")] += 1.0
    return vec


# ── Prepare ──────────────────────────────────────────────────────────

def test_prepare_sanitizes_before_reducing():
    pipeline = MemoryPipeline.create()
    artifact = pipeline.prepare(FORGE_OUTPUT, "forge")
    assert artifact.kind == "forge_logs"
    assert artifact.sanitized.was_modified
    assert "abcdefghijklmnop" not in artifact.sanitized.final_text
    assert "abcdefghijklmnop" not in artifact.reduction.summary
    assert SensitivityType.CREDENTIALS in artifact.sanitized.sensitivity.matched_types
    assert artifact.reduction.extracted_metadata["tests"][0]["profit"] == 50000


def test_prepare_unknown_kind():
    artifact = MemoryPipeline.create().prepare("free-form note", "scratchpad")
    assert artifact.kind == "generic"
    assert artifact.reduction.summary == "free-form note"


def test_prepare_structured_content():
    abi = [{"type": "function", "name": "f", "inputs": [], "outputs": [], "stateMutability": "view"}]
    artifact = MemoryPipeline.create().prepare(abi, "abi")
    assert artifact.reduction.extracted_metadata["read_only_functions"] == ["f() view"]


def test_prepare_respects_sanitize_options():
    pipeline = MemoryPipeline.create(sanitize=SanitizeOptions(max_length=30))
    artifact = pipeline.prepare("x" * 500)
    assert len(artifact.sanitized.final_text) <= 30
    assert len(artifact.reduction.summary) <= 30


# ── Evaluate / process ───────────────────────────────────────────────

def test_process_novel():
    decision = MemoryPipeline.create().process(FORGE_OUTPUT, "forge_logs", letter_embed, [])
    assert decision.should_persist
    assert decision.novelty_score == 1.0
    assert not decision.duplicate.is_duplicate


def test_process_duplicate():
    pipeline = MemoryPipeline.create()
    first = pipeline.prepare(FORGE_OUTPUT, "forge_logs")
    stored = {"finding-1": letter_embed(first.reduction.summary)}

    decision = pipeline.process(FORGE_OUTPUT, "forge_logs", letter_embed, stored)
    assert not decision.should_persist
    assert decision.duplicate.is_duplicate
    assert decision.duplicate.duplicate_of == "finding-1"


def test_evaluate_applies_penalty():
    pipeline = MemoryPipeline.create(novelty=NoveltyConfig(novelty_penalties={"reentrancy": 0.5}))
    artifact = pipeline.prepare("reentrancy in withdraw")
    decision = pipeline.evaluate(artifact, [1.0, 0.0], [], attack_pattern="reentrancy")
    assert decision.should_persist
    assert decision.novelty_score == 0.5
    assert decision.duplicate.novelty_score == 1.0


def test_decision_to_dict_is_json():
    decision = MemoryPipeline.create().process(FORGE_OUTPUT, "forge_logs", letter_embed, [])
    payload = json.loads(json.dumps(decision.to_dict()))
    assert payload["should_persist"] is True
    assert payload["artifact"]["kind"] == "forge_logs"
    assert payload["artifact"]["sanitized"]["sensitivity"]["matched_types"] == ["credentials"]


# ── Batches ──────────────────────────────────────────────────────────

def test_filter_batch_drops_repeats():
    items = [
        ("generic", "reentrancy in withdraw"),
        ("generic", "reentrancy in withdraw"),
        ("generic", "zzz qqq"),
    ]
    kept = MemoryPipeline.create().filter_batch(items, letter_embed, [])
    assert [artifact.reduction.summary for artifact, _ in kept] == [
        "reentrancy in withdraw",
        "zzz qqq",
    ]
    assert all(score == 1.0 for _, score in kept)


def test_filter_batch_against_store():
    pipeline = MemoryPipeline.create()
    stored = [letter_embed("reentrancy in withdraw")]
    kept = pipeline.filter_batch([("generic", "reentrancy in withdraw")], letter_embed, stored)
    assert kept == []
