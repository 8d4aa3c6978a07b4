"""Tests for the JSON-over-stdio CLI."""

import sys, os, io, json, logging
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from exploit_memory.cli import main


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger("exploit_memory").handlers.clear()


def run(monkeypatch, capsys, argv, stdin=""):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    code = main(argv)
    captured = capsys.readouterr()
    return code, captured.out, captured.err


# ── Commands ─────────────────────────────────────────────────────────

def test_redact(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["redact"], "Authorization: Bearer abcdefghijklmnop")
    assert code == 0
    result = json.loads(out)
    assert result["count"] == 1
    assert result["categories"] == ["bearer_token"]
    assert "abcdefghijklmnop" not in result["redacted_text"]


def test_classify(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["classify"], "postgres://admin:pw123@db:5432/x")
    assert code == 0
    assert json.loads(out)["matched_types"] == ["database_credentials"]


def test_sanitize_flags(monkeypatch, capsys):
    text = "at /home/alice/Vault.sol " + "a" * 200
    code, out, _ = run(monkeypatch, capsys, ["sanitize", "--max-length", "60"], text)
    assert code == 0
    result = json.loads(out)
    assert len(result["final_text"]) <= 60
    assert result["final_text"].startswith("at [INTERNAL_PATH]/Vault.sol")

    code, out, _ = run(monkeypatch, capsys, ["sanitize", "--keep-paths"], "at /home/alice/Vault.sol")
    assert json.loads(out)["final_text"] == "at /home/alice/Vault.sol"


def test_reduce(monkeypatch, capsys):
    logs = "[PASS] testExploit (2.1s)\nProfit: 50000 USDC"
    code, out, _ = run(monkeypatch, capsys, ["reduce", "--kind", "forge_logs"], logs)
    assert code == 0
    result = json.loads(out)
    assert result["kind"] == "forge_logs"
    assert result["extracted_metadata"]["tests"][0]["profit"] == 50000


def test_prepare(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["prepare"], "token ghp_" + "a" * 36)
    assert code == 0
    result = json.loads(out)
    assert result["kind"] == "generic"
    assert result["reduction"]["summary"] == "token [REDACTED:api_key]"


def test_dedup(monkeypatch, capsys):
    request = {"query": [1, 0], "candidates": {"h-1": [1, 0]}, "attack_pattern": "reentrancy"}
    code, out, _ = run(monkeypatch, capsys, ["dedup"], json.dumps(request))
    assert code == 0
    result = json.loads(out)
    assert result["is_duplicate"] is True
    assert result["duplicate_of"] == "h-1"
    assert result["adjusted_novelty"] == pytest.approx(0.0)


def test_diversity(monkeypatch, capsys):
    code, out, _ = run(monkeypatch, capsys, ["diversity"], "[]")
    assert code == 0
    assert json.loads(out) == {"count": 0, "diversity": 0.0}


def test_config_file(monkeypatch, capsys, tmp_path):
    path = tmp_path / "memory.yaml"
    path.write_text("exploit_memory:\n  novelty:\n    duplicate_threshold: 1.0\n    similarity_threshold: 0.5\n")
    request = {"query": [1, 0], "candidates": [[0.99, 0.1]]}
    code, out, _ = run(monkeypatch, capsys, ["--config", str(path), "dedup"], json.dumps(request))
    assert code == 0
    assert json.loads(out)["is_duplicate"] is False


# ── Errors ───────────────────────────────────────────────────────────

def test_dimension_mismatch_exit_code(monkeypatch, capsys):
    request = {"query": [1, 0], "candidates": [[1, 0, 0]]}
    code, out, err = run(monkeypatch, capsys, ["dedup"], json.dumps(request))
    assert code == 2
    assert out == ""
    assert "dimension" in err


def test_invalid_json(monkeypatch, capsys):
    code, _, err = run(monkeypatch, capsys, ["dedup"], "{not json")
    assert code == 2
    assert "JSON" in err


def test_missing_config(monkeypatch, capsys, tmp_path):
    code, _, err = run(monkeypatch, capsys, ["--config", str(tmp_path / "nope.yaml"), "redact"], "x")
    assert code == 2
    assert err.startswith("error:")


def test_bad_config_value(monkeypatch, capsys, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("sanitize:\n  max_length: -1\n")
    code, _, err = run(monkeypatch, capsys, ["--config", str(path), "redact"], "x")
    assert code == 2
    assert "max_length" in err
