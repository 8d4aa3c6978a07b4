"""Tests for the per-kind artifact reducers."""

import sys, os, json
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from exploit_memory import ArtifactKind, ReducerConfig, available_kinds, reduce_by_kind
from exploit_memory.errors import ConfigError
from exploit_memory.reducers import normalize_kind

VAULT_SOURCE = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Vault is Ownable, ReentrancyGuard {
    mapping(address => uint256) public balances;
    uint256 private totalDeposits;

    event Withdrawn(address indexed user, uint256 amount);
    error InsufficientBalance(uint256 available);

    // function hidden(uint256 x) external {}
    function withdraw(uint256 amount) external nonReentrant {
        require(balances[msg.sender] >= amount, "low");
        if (amount == 0) revert InsufficientBalance(0);
        balances[msg.sender] -= amount;
        emit Withdrawn(msg.sender, amount);
    }
}
"""


# ── Forge logs ───────────────────────────────────────────────────────

def test_forge_pass_with_profit():
    result = reduce_by_kind("forge_logs", "[PASS] testExploit (2.1s)\nProfit: 50000 USDC")
    assert result.kind == "forge_logs"
    tests = result.extracted_metadata["tests"]
    assert len(tests) == 1
    assert tests[0]["name"] == "testExploit"
    assert tests[0]["status"] == "pass"
    assert tests[0]["profit"] == 50000
    assert tests[0]["profit_token"] == "USDC"
    assert tests[0]["duration"] == "2.1s"
    assert result.should_store_raw


def test_forge_failure_and_suite():
    logs = (
        "Ran 1 test for test/Drain.t.sol:DrainTest\n"
        "[FAIL. Reason: revert: Insufficient balance] testDrain() (gas: 123456)\n"
        "Suite result: FAILED. 0 passed; 1 failed; 0 skipped; finished in 1.2ms\n"
    )
    result = reduce_by_kind("forge", logs)
    meta = result.extracted_metadata
    assert meta["failed"] == 1
    assert meta["tests"][0]["gas"] == 123456
    assert meta["tests"][0]["reason"] == "revert: Insufficient balance"
    assert meta["suites"] == [{"ok": False, "passed": 0, "failed": 1, "skipped": 0}]
    assert "revert: Insufficient balance" in meta["revert_reasons"]
    assert result.should_store_raw


def test_forge_all_passing_not_raw():
    logs = "[PASS] test_a() (gas: 100)\n[PASS] test_b() (gas: 200)\n"
    result = reduce_by_kind("forge_logs", logs)
    assert result.extracted_metadata["passed"] == 2
    assert not result.should_store_raw


# ── Source ───────────────────────────────────────────────────────────

def test_source_structure():
    result = reduce_by_kind("source", VAULT_SOURCE)
    meta = result.extracted_metadata
    assert result.kind == "source"
    assert meta["pragma"] == "^0.8.20"
    assert meta["contracts"] == [
        {"kind": "contract", "name": "Vault", "inherits": ["Ownable", "ReentrancyGuard"]},
    ]
    assert meta["functions"] == ["function withdraw(uint256 amount) external nonReentrant"]
    assert meta["state_variables"] == [
        "mapping(address => uint256) public balances",
        "uint256 private totalDeposits",
    ]
    assert 'require(balances[msg.sender] >= amount, "low")' in meta["guards"]
    assert "if (amount == 0) revert InsufficientBalance" in meta["guards"]
    assert meta["events_declared"] == ["Withdrawn(address indexed user, uint256 amount)"]
    assert meta["events_emitted"] == ["Withdrawn"]
    assert meta["errors"] == ["InsufficientBalance(uint256 available)"]
    assert not result.should_store_raw
    assert "hidden" not in result.summary


def test_source_with_assembly_keeps_raw():
    code = "contract A { function f() external { assembly { sstore(0, 1) } } }"
    result = reduce_by_kind("solidity", code)
    assert result.extracted_metadata["has_low_level_code"]
    assert result.should_store_raw


def test_source_without_structure_falls_back():
    result = reduce_by_kind("source", "just some notes about the audit")
    assert result.kind == "generic"
    assert result.extracted_metadata["fallback_from"] == "source"
    assert result.summary == "just some notes about the audit"


# ── ABI ──────────────────────────────────────────────────────────────

ERC20_ABI = [
    {"type": "constructor", "inputs": [], "stateMutability": "nonpayable"},
    {"type": "function", "name": "transfer", "stateMutability": "nonpayable",
     "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
     "outputs": [{"name": "", "type": "bool"}]},
    {"type": "function", "name": "balanceOf", "stateMutability": "view",
     "inputs": [{"name": "account", "type": "address"}],
     "outputs": [{"name": "", "type": "uint256"}]},
    {"type": "event", "name": "Transfer",
     "inputs": [{"name": "from", "type": "address", "indexed": True},
                {"name": "to", "type": "address", "indexed": True},
                {"name": "value", "type": "uint256"}]},
]


def test_abi_split():
    result = reduce_by_kind("abi", json.dumps(ERC20_ABI))
    meta = result.extracted_metadata
    assert meta["mutating_functions"] == ["transfer(address to, uint256 amount) returns (bool)"]
    assert meta["read_only_functions"] == ["balanceOf(address account) returns (uint256) view"]
    assert meta["events"] == ["Transfer(address indexed from, address indexed to, uint256 value)"]
    assert meta["has_constructor"]
    assert not result.should_store_raw


def test_abi_accepts_parsed_content():
    result = reduce_by_kind("abi", {"abi": ERC20_ABI})
    assert result.kind == "abi"
    assert len(result.extracted_metadata["read_only_functions"]) == 1


def test_abi_malformed_falls_back():
    result = reduce_by_kind("abi", "not json at all")
    assert result.kind == "generic"
    assert result.extracted_metadata["fallback_from"] == "abi"
    assert "error" in result.extracted_metadata
    assert result.summary == "not json at all"


# ── Graph / invariants / paths ───────────────────────────────────────

def test_graph_top_nodes():
    graph = {
        "nodes": [{"id": "a", "severity": "high"}, {"id": "b"}, {"id": "c", "severity": "critical"}],
        "edges": [{"source": "a", "target": "b"}, {"source": "b", "target": "c"}],
    }
    result = reduce_by_kind("graph", json.dumps(graph), ReducerConfig(top_k=2))
    meta = result.extracted_metadata
    assert meta["node_count"] == 3
    assert meta["edge_count"] == 2
    assert [n["id"] for n in meta["top_nodes"]] == ["c", "a"]
    assert meta["omitted_nodes"] == 1
    assert result.should_store_raw


def test_invariants_violated_first():
    invariants = [
        {"name": "totalSupply == sum(balances)", "status": "holds"},
        {"name": "solvency", "status": "violated", "severity": "high"},
    ]
    result = reduce_by_kind("invariant", json.dumps(invariants))
    meta = result.extracted_metadata
    assert meta["violated_count"] == 1
    assert meta["top_invariants"][0] == {"text": "solvency", "violated": True, "severity": "high"}
    assert result.should_store_raw


def test_invariants_plain_lines():
    result = reduce_by_kind("invariants", "- a > 0\n- b < c\n")
    meta = result.extracted_metadata
    assert meta["invariant_count"] == 2
    assert [e["text"] for e in meta["top_invariants"]] == ["a > 0", "b < c"]
    assert not result.should_store_raw


def test_attack_paths():
    paths = {"paths": [
        {"steps": ["a", "b"]},
        {"name": "flash loan drain", "steps": ["borrow", "swap", "repay"], "profit": 1200, "severity": "high"},
    ]}
    result = reduce_by_kind("path", json.dumps(paths))
    meta = result.extracted_metadata
    assert meta["path_count"] == 2
    assert meta["node_count"] == 5
    assert meta["edge_count"] == 3
    assert meta["total_profit"] == 1200
    assert meta["top_paths"][0]["name"] == "flash loan drain"
    assert meta["top_paths"][0]["preview"] == "borrow -> swap -> repay"
    assert meta["top_paths"][1]["name"] == "path 1"
    assert result.should_store_raw


@pytest.mark.parametrize("text", ["[]", '{"paths": []}'])
def test_attack_paths_empty(text):
    result = reduce_by_kind("path", text)
    meta = result.extracted_metadata
    assert result.kind == "path"
    assert meta["path_count"] == 0
    assert meta["top_paths"] == []
    assert not result.should_store_raw


# ── Address lists ────────────────────────────────────────────────────

def test_address_list_dedup_and_labels():
    a = "0x" + "aB" * 20
    b = "0x" + "11" * 20
    text = f"Vault: {a}\n{a.lower()}\n- {b}\n"
    result = reduce_by_kind("addresses", text)
    meta = result.extracted_metadata
    assert meta["address_count"] == 2
    assert meta["addresses"] == [a, b]
    assert meta["labels"] == {a: "Vault"}


def test_address_list_json():
    a = "0x" + "22" * 20
    result = reduce_by_kind("address_list", json.dumps({"router": a}))
    assert result.extracted_metadata["labels"] == {a: "router"}


def test_address_list_nested_json():
    a = "0x" + "33" * 20
    b = "0x" + "44" * 20
    c = "0x" + "55" * 20
    data = {
        "addresses": [a],
        "vault": {"address": b},
        "tokens": [{"address": c, "name": "WETH"}, {"address": a}],
    }
    meta = reduce_by_kind("address_list", json.dumps(data)).extracted_metadata
    assert meta["address_count"] == 3
    assert meta["addresses"] == [a, b, c]
    assert meta["labels"] == {b: "vault", c: "WETH"}


def test_address_list_bracketed_text_is_scanned():
    a = "0x" + "66" * 20
    result = reduce_by_kind("address_list", f"[mainnet] pool {a}")
    assert result.extracted_metadata["addresses"] == [a]


# ── Generic / dispatch ───────────────────────────────────────────────

def test_generic_short_text_verbatim():
    result = reduce_by_kind("generic", "hello")
    assert result.summary == "hello"
    assert not result.should_store_raw


def test_generic_long_text_bounded():
    text = "line of trace output\n" * 500
    result = reduce_by_kind("generic", text)
    assert len(result.summary) <= 2000
    assert result.extracted_metadata["truncated"]
    assert result.should_store_raw
    assert result.summary.startswith(f"[{len(text)} chars")


def test_unknown_kind_uses_generic():
    result = reduce_by_kind("telemetry", "some data")
    assert result.kind == "generic"
    assert result.summary == "some data"


def test_normalize_kind():
    assert normalize_kind("Forge-Log") == "forge_logs"
    assert normalize_kind(ArtifactKind.ABI) == "abi"
    assert normalize_kind(None) == "generic"
    assert normalize_kind("nope") == "generic"


def test_available_kinds():
    assert set(available_kinds()) == {
        "source", "abi", "graph", "invariant", "path", "forge_logs", "address_list", "generic",
    }


@pytest.mark.parametrize("kind", available_kinds() + ["unknown"])
def test_summary_bound_for_every_kind(kind):
    config = ReducerConfig(max_summary_chars=300)
    result = reduce_by_kind(kind, "x " * 10_000, config)
    assert len(result.summary) <= 300


@pytest.mark.parametrize("kind", available_kinds())
def test_empty_content_never_raises(kind):
    result = reduce_by_kind(kind, "")
    assert isinstance(result.summary, str)


def test_input_clipped():
    result = reduce_by_kind("generic", "a" * 500, ReducerConfig(max_input_chars=100))
    assert result.extracted_metadata["input_clipped"]
    assert result.extracted_metadata["char_count"] == 100
    assert result.should_store_raw


def test_reducer_config_validation():
    with pytest.raises(ConfigError):
        ReducerConfig(top_k=0)
    with pytest.raises(ConfigError):
        ReducerConfig(max_summary_chars="big")
