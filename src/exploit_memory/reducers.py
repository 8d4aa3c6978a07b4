"""Kind-specific reducers — turn verbose artifacts into bounded digests.

Each reducer is a pure function ``(text, ReducerConfig) -> ReductionResult``
that pulls out the structure worth remembering (signatures, verdicts,
counts, the top-K most salient entries) instead of blindly truncating.

Usage:
    from exploit_memory import reduce_by_kind

    result = reduce_by_kind("forge_logs", "[PASS] testExploit() (gas: 1234)\\nProfit: 50000 USDC")
    result.extracted_metadata["tests"][0]["profit"]   # 50000
    result.should_store_raw                            # True (exact numbers matter)

The dispatcher never raises: unknown kinds and reducers that choke on
malformed input both end up in the generic reducer.
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from .errors import ConfigError
from .logging import get_logger
from .types import ReductionResult

log = get_logger("reducers")


class ArtifactKind(str, Enum):
    SOURCE = "source"
    ABI = "abi"
    GRAPH = "graph"
    INVARIANT = "invariant"
    PATH = "path"
    FORGE_LOGS = "forge_logs"
    ADDRESS_LIST = "address_list"
    GENERIC = "generic"


@dataclass(frozen=True)
class ReducerConfig:
    """Bounds shared by every reducer."""
    top_k: int = 10                   # salient items listed in a summary
    max_summary_chars: int = 2000
    max_input_chars: int = 500_000    # content beyond this is cut before parsing
    max_items: int = 200              # cap on every metadata list

    def __post_init__(self) -> None:
        for name in ("top_k", "max_summary_chars", "max_input_chars", "max_items"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")


Reducer = Callable[[str, ReducerConfig], ReductionResult]

DEFAULT_REDUCER_CONFIG = ReducerConfig()

_SUMMARY_MARKER = "\n...[summary truncated]"
_OMISSION_MARKER = "\n...[{omitted} chars omitted]...\n"


# ── Shared helpers ───────────────────────────────────────────────────

def _cap(text: str, limit: int) -> str:
    """Bound a summary to limit characters, marking the cut."""
    if len(text) <= limit:
        return text
    if limit <= len(_SUMMARY_MARKER):
        return text[:limit]
    return text[:limit - len(_SUMMARY_MARKER)] + _SUMMARY_MARKER


def _head_tail(text: str, budget: int) -> str:
    """Keep the start and end of text within budget characters."""
    if len(text) <= budget:
        return text
    marker = _OMISSION_MARKER.format(omitted=len(text) - budget)
    room = max(budget - len(marker), 0)
    head = room * 2 // 3
    tail = room - head
    return text[:head] + marker + (text[len(text) - tail:] if tail else "")


def _clip(text: str, limit: int = 200) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit - 3] + "..."


def _unique(values: list[str], limit: int) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
            if len(out) >= limit:
                break
    return out


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_amount(raw: str) -> int | float:
    cleaned = raw.replace(",", "").replace("_", "")
    if re.fullmatch(r"-?\d+", cleaned):
        return int(cleaned)
    return float(cleaned)


_SEVERITY_RANK = {
    "critical": 5, "high": 4, "medium": 3, "med": 3, "moderate": 3,
    "low": 2, "info": 1, "informational": 1, "note": 1,
}

_SCORE_FIELDS = (
    "confidence", "score", "salience", "risk", "likelihood",
    "weight", "estimated_profit", "profit",
)

_LABEL_FIELDS = ("name", "title", "label", "id", "description", "text", "action", "invariant")


def _severity(item: dict) -> int:
    value = item.get("severity", item.get("impact"))
    if isinstance(value, str):
        return _SEVERITY_RANK.get(value.strip().lower(), 0)
    if _is_number(value):
        return int(value)
    return 0


def _score(item: dict) -> float:
    for name in _SCORE_FIELDS:
        value = item.get(name)
        if _is_number(value):
            return float(value)
    return 0.0


def _salience(item: Any) -> tuple[int, float]:
    """Caller-independent importance: severity first, then a numeric score."""
    if not isinstance(item, dict):
        return (0, 0.0)
    return (_severity(item), _score(item))


def _label(item: Any) -> str:
    if isinstance(item, dict):
        for name in _LABEL_FIELDS:
            value = item.get(name)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
                return _clip(str(value), 120)
        return _clip(json.dumps(item, sort_keys=True, default=str), 120)
    return _clip(str(item), 120)


def _rank(items: list[Any], k: int, key: Callable[[Any], tuple]) -> list[tuple[int, Any]]:
    """(index, item) pairs, highest key first; equal keys keep input order."""
    ranked = sorted(enumerate(items), key=lambda pair: tuple(-x for x in key(pair[1])) + (pair[0],))
    return ranked[:k]


def _top_k(items: list[Any], k: int, key: Callable[[Any], tuple]) -> list[Any]:
    return [item for _, item in _rank(items, k, key)]


def _load_json(text: str) -> Any:
    return json.loads(text)


# ── Source code ──────────────────────────────────────────────────────

_QUOTE_OR_COMMENT = re.compile(r"//|/\*|\"|'")

_PRAGMA = re.compile(r"\bpragma\s+solidity\s+([^;\n]{1,60});")
_CONTRACT = re.compile(
    r"\b(abstract\s+contract|contract|interface|library)\s+([A-Za-z_]\w*)"
    r"(?:\s+is\s+([^{;]{1,300}?))?\s*\{"
)
_FUNCTION = re.compile(
    r"\b(function\s+[A-Za-z_]\w*|constructor|fallback|receive)\s*\(([^()]{0,400}(?:\([^()]{0,200}\)[^()]{0,200})*)\)"
    r"([^{};]{0,400})"
)
_MODIFIER_DECL = re.compile(r"\bmodifier\s+([A-Za-z_]\w*)\s*(\([^()]{0,300}\))?")
_EVENT_DECL = re.compile(r"\bevent\s+([A-Za-z_]\w*)\s*\(([^()]{0,400})\)")
_ERROR_DECL = re.compile(r"\berror\s+([A-Za-z_]\w*)\s*\(([^()]{0,400})\)")
_EMIT = re.compile(r"\bemit\s+([A-Za-z_][\w.]*)\s*\(")
_GUARD_START = re.compile(r"\b(require|assert|if)\s*\(")
_REVERT_AFTER = re.compile(r"\s*\{?\s*revert\b\s*([A-Za-z_]\w*)?")
_RAW_WORTHY = re.compile(r"\bassembly\s*(?:\(\s*\"memory-safe\"\s*\)\s*)?\{|\bunchecked\s*\{|\bdelegatecall\b")

_STATE_VAR = re.compile(
    r"^(?P<type>mapping\s*\(.+\)|[A-Za-z_][\w.]*(?:\s*\[\s*\w*\s*\])*)\s+"
    r"(?P<mods>(?:(?:public|private|internal|constant|immutable|override|transient)\s+)*)"
    r"(?P<name>[A-Za-z_]\w*)\s*(?:=.*)?$",
    re.DOTALL,
)
_NOT_STATE = (
    "function", "modifier", "event", "error", "using", "pragma", "import",
    "return", "emit", "type", "struct", "enum", "constructor", "fallback", "receive",
)


def _strip_comments(source: str, *, blank_strings: bool = False) -> str:
    """Drop // and /* */ comments in one linear pass; strings are respected."""
    out: list[str] = []
    i, n = 0, len(source)
    while i < n:
        m = _QUOTE_OR_COMMENT.search(source, i)
        if m is None:
            out.append(source[i:])
            break
        out.append(source[i:m.start()])
        token = m.group()
        if token == "//":
            j = source.find("\n", m.end())
            i = n if j == -1 else j
        elif token == "/*":
            j = source.find("*/", m.end())
            out.append(" ")
            i = n if j == -1 else j + 2
        else:
            j = m.end()
            while j < n and source[j] != token and source[j] != "\n":
                j += 2 if source[j] == "\\" else 1
            out.append(token + token if blank_strings else source[m.start():j + 1])
            i = j + 1
    return "".join(out)


def _balanced(text: str, open_idx: int, limit: int = 300) -> tuple[str, int] | None:
    """Contents of the parenthesis at open_idx, scanning at most limit chars."""
    depth = 0
    end = min(len(text), open_idx + limit)
    for i in range(open_idx, end):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[open_idx + 1:i], i + 1
    return None


def _state_statements(skeleton: str, limit: int) -> list[str]:
    """Statements sitting directly in a contract body (depth 1)."""
    statements: list[str] = []
    buf: list[str] = []
    depth = 0
    for ch in skeleton:
        if ch == "{":
            depth += 1
            buf = []
        elif ch == "}":
            depth = max(depth - 1, 0)
            buf = []
        elif depth == 1:
            if ch == ";":
                stmt = " ".join("".join(buf).split())
                if stmt:
                    statements.append(stmt)
                    if len(statements) >= limit:
                        break
                buf = []
            elif len(buf) < 400:
                buf.append(ch)
    return statements


def _guards(code: str, limit: int) -> list[str]:
    found: list[str] = []
    for m in _GUARD_START.finditer(code):
        span = _balanced(code, m.end() - 1)
        if span is None:
            continue
        condition, after = span
        keyword = m.group(1)
        if keyword == "if":
            revert = _REVERT_AFTER.match(code, after)
            if revert is None:
                continue
            target = f" revert {revert.group(1)}" if revert.group(1) else " revert"
            found.append(_clip(f"if ({condition}){target}"))
        else:
            found.append(_clip(f"{keyword}({condition})"))
        if len(found) >= limit * 2:
            break
    return _unique(found, limit)


def _reduce_source(text: str, config: ReducerConfig) -> ReductionResult:
    code = _strip_comments(text)
    skeleton = _strip_comments(text, blank_strings=True)

    pragma = _PRAGMA.search(code)
    contracts = [
        {
            "kind": " ".join(m.group(1).split()),
            "name": m.group(2),
            "inherits": [p.strip() for p in (m.group(3) or "").split(",") if p.strip()],
        }
        for m in _CONTRACT.finditer(skeleton)
    ][:config.max_items]

    functions = _unique(
        [_clip(f"{m.group(1)}({m.group(2)}) {m.group(3)}") for m in _FUNCTION.finditer(code)],
        config.max_items,
    )
    if not contracts and not functions:
        return _fallback(_reduce_generic(text, config), ArtifactKind.SOURCE.value, "no contract structure found")

    state_vars: list[str] = []
    for stmt in _state_statements(skeleton, config.max_items * 4):
        if stmt.split(" ", 1)[0] in _NOT_STATE:
            continue
        m = _STATE_VAR.match(stmt)
        if m:
            mods = " ".join(m.group("mods").split())
            state_vars.append(_clip(" ".join(p for p in (m.group("type"), mods, m.group("name")) if p)))
    state_vars = _unique(state_vars, config.max_items)

    modifiers = _unique(
        [m.group(1) + (m.group(2) or "") for m in _MODIFIER_DECL.finditer(code)],
        config.max_items,
    )
    events = _unique([f"{m.group(1)}({_clip(m.group(2))})" for m in _EVENT_DECL.finditer(code)], config.max_items)
    errors = _unique([f"{m.group(1)}({_clip(m.group(2))})" for m in _ERROR_DECL.finditer(code)], config.max_items)
    emitted = _unique([m.group(1) for m in _EMIT.finditer(code)], config.max_items)
    guards = _guards(code, config.max_items)
    raw_worthy = _RAW_WORTHY.search(code) is not None

    lines: list[str] = []
    if pragma:
        lines.append(f"pragma solidity {pragma.group(1).strip()}")
    for c in contracts[:config.top_k]:
        inherits = f" is {', '.join(c['inherits'])}" if c["inherits"] else ""
        lines.append(f"{c['kind']} {c['name']}{inherits}")
    if state_vars:
        lines.append(f"state ({len(state_vars)}): " + "; ".join(state_vars[:config.top_k]))
    lines.append(f"functions ({len(functions)}):")
    lines.extend(f"  {sig}" for sig in functions)
    if modifiers:
        lines.append("modifiers: " + ", ".join(modifiers))
    if guards:
        lines.append(f"guards ({len(guards)}):")
        lines.extend(f"  {g}" for g in guards[:config.top_k])
    if events:
        lines.append("events: " + ", ".join(events))
    if emitted:
        lines.append("emits: " + ", ".join(emitted))
    if errors:
        lines.append("errors: " + ", ".join(errors))

    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=raw_worthy,
        extracted_metadata={
            "pragma": pragma.group(1).strip() if pragma else None,
            "contracts": contracts,
            "functions": functions,
            "state_variables": state_vars,
            "modifiers": modifiers,
            "guards": guards,
            "events_declared": events,
            "events_emitted": emitted,
            "errors": errors,
            "has_low_level_code": raw_worthy,
        },
        kind=ArtifactKind.SOURCE.value,
    )


# ── ABI ──────────────────────────────────────────────────────────────

_READ_ONLY = {"view", "pure"}


def _abi_type(param: dict, depth: int = 0) -> str:
    kind = str(param.get("type", ""))
    if kind.startswith("tuple") and depth < 8:
        inner = ",".join(_abi_type(c, depth + 1) for c in param.get("components") or [] if isinstance(c, dict))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def _abi_params(params: Any) -> str:
    if not isinstance(params, list):
        return ""
    parts = []
    for p in params:
        if not isinstance(p, dict):
            continue
        name = p.get("name")
        indexed = " indexed" if p.get("indexed") else ""
        parts.append(f"{_abi_type(p)}{indexed}{' ' + name if name else ''}")
    return ", ".join(parts)


def _mutability(entry: dict) -> str:
    if entry.get("stateMutability"):
        return str(entry["stateMutability"])
    if entry.get("constant"):
        return "view"
    return "payable" if entry.get("payable") else "nonpayable"


def _reduce_abi(text: str, config: ReducerConfig) -> ReductionResult:
    data = _load_json(text)
    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ValueError("ABI must be a JSON list or an object with an 'abi' list")

    mutating: list[str] = []
    read_only: list[str] = []
    events: list[str] = []
    errors: list[str] = []
    specials: set[str] = set()

    for entry in data:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type", "function")
        name = entry.get("name", "")
        if kind == "function":
            signature = f"{name}({_abi_params(entry.get('inputs'))})"
            outputs = _abi_params(entry.get("outputs"))
            if outputs:
                signature += f" returns ({outputs})"
            mutability = _mutability(entry)
            if mutability in _READ_ONLY:
                read_only.append(f"{signature} {mutability}")
            else:
                mutating.append(signature if mutability == "nonpayable" else f"{signature} {mutability}")
        elif kind == "event":
            events.append(f"{name}({_abi_params(entry.get('inputs'))})")
        elif kind == "error":
            errors.append(f"{name}({_abi_params(entry.get('inputs'))})")
        elif kind in ("constructor", "fallback", "receive"):
            specials.add(kind)

    lines = [
        f"ABI: {len(mutating)} state-mutating, {len(read_only)} read-only functions, "
        f"{len(events)} events, {len(errors)} errors"
    ]
    if specials:
        lines.append("special: " + ", ".join(sorted(specials)))
    if mutating:
        lines.append("mutating:")
        lines.extend(f"  {s}" for s in mutating)
    if read_only:
        lines.append("read-only:")
        lines.extend(f"  {s}" for s in read_only)
    if events:
        lines.append("events: " + "; ".join(events))
    if errors:
        lines.append("errors: " + "; ".join(errors))

    limit = config.max_items
    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=False,
        extracted_metadata={
            "mutating_functions": mutating[:limit],
            "read_only_functions": read_only[:limit],
            "events": events[:limit],
            "errors": errors[:limit],
            "has_constructor": "constructor" in specials,
            "has_fallback": "fallback" in specials,
            "has_receive": "receive" in specials,
        },
        kind=ArtifactKind.ABI.value,
    )


# ── Graph ────────────────────────────────────────────────────────────

def _node_id(node: Any) -> str:
    if isinstance(node, dict):
        for name in ("id", "name", "label"):
            if node.get(name) is not None:
                return str(node[name])
        return _label(node)
    return str(node)


def _endpoint(edge: dict, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = edge.get(name)
        if value is not None:
            return _node_id(value)
    return None


def _reduce_graph(text: str, config: ReducerConfig) -> ReductionResult:
    data = _load_json(text)
    if not isinstance(data, dict):
        raise ValueError("graph must be a JSON object with nodes/edges")
    nodes = data.get("nodes", data.get("vertices")) or []
    edges = data.get("edges", data.get("links")) or []
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise ValueError("graph nodes/edges must be lists")

    degree: dict[str, int] = {}
    for edge in edges:
        if not isinstance(edge, dict):
            continue
        for end in (_endpoint(edge, ("source", "from", "src")), _endpoint(edge, ("target", "to", "dst"))):
            if end is not None:
                degree[end] = degree.get(end, 0) + 1

    def _key(node: Any) -> tuple:
        severity, score = _salience(node)
        return (severity, score, degree.get(_node_id(node), 0))

    top = _top_k(nodes, config.top_k, _key)
    top_nodes = []
    for node in top:
        severity, score = _salience(node)
        entry: dict[str, Any] = {"id": _node_id(node), "label": _label(node), "degree": degree.get(_node_id(node), 0)}
        if isinstance(node, dict) and node.get("severity") is not None:
            entry["severity"] = node["severity"]
        if score:
            entry["score"] = score
        top_nodes.append(entry)

    lines = [f"graph: {len(nodes)} nodes, {len(edges)} edges"]
    if top_nodes:
        lines.append(f"top {len(top_nodes)} nodes:")
        for n in top_nodes:
            extra = f" [{n['severity']}]" if "severity" in n else ""
            lines.append(f"  {n['label']}{extra} (degree {n['degree']})")

    omitted = max(len(nodes) - len(top_nodes), 0)
    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=omitted > 0,
        extracted_metadata={
            "node_count": len(nodes),
            "edge_count": len(edges),
            "top_nodes": top_nodes,
            "omitted_nodes": omitted,
        },
        kind=ArtifactKind.GRAPH.value,
    )


# ── Invariants ───────────────────────────────────────────────────────

_VIOLATED = {"violated", "broken", "failed", "fail", "falsified", "false"}
_BULLET = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s*")


def _violated(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    if item.get("violated") is True or item.get("holds") is False:
        return True
    status = item.get("status", item.get("result"))
    return isinstance(status, str) and status.strip().lower() in _VIOLATED


def _reduce_invariant(text: str, config: ReducerConfig) -> ReductionResult:
    try:
        data = _load_json(text)
    except ValueError:
        data = [_BULLET.sub("", line).strip() for line in text.splitlines() if line.strip()]
    if isinstance(data, dict):
        data = data.get("invariants", [data])
    if not isinstance(data, list):
        data = [data]

    by_severity: dict[str, int] = {}
    violated = 0
    for item in data:
        if isinstance(item, dict) and isinstance(item.get("severity"), str):
            sev = item["severity"].strip().lower()
            by_severity[sev] = by_severity.get(sev, 0) + 1
        if _violated(item):
            violated += 1

    top = _top_k(data, config.top_k, lambda item: (int(_violated(item)),) + _salience(item))
    top_entries = []
    for item in top:
        entry: dict[str, Any] = {"text": _label(item), "violated": _violated(item)}
        if isinstance(item, dict):
            if item.get("severity") is not None:
                entry["severity"] = item["severity"]
            score = _score(item)
            if score:
                entry["score"] = score
        top_entries.append(entry)

    lines = [f"invariants: {len(data)} total ({violated} violated)"]
    if by_severity:
        lines.append("by severity: " + ", ".join(f"{k}={v}" for k, v in sorted(by_severity.items())))
    for e in top_entries:
        flags = "[VIOLATED]" if e["violated"] else ""
        if "severity" in e:
            flags += f"[{e['severity']}]"
        lines.append(f"  {flags + ' ' if flags else ''}{e['text']}")

    omitted = max(len(data) - len(top_entries), 0)
    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=violated > 0 or omitted > 0,
        extracted_metadata={
            "invariant_count": len(data),
            "violated_count": violated,
            "by_severity": by_severity,
            "top_invariants": top_entries,
            "omitted": omitted,
        },
        kind=ArtifactKind.INVARIANT.value,
    )


# ── Attack paths ─────────────────────────────────────────────────────

def _steps(path: Any) -> list[Any]:
    if isinstance(path, dict):
        steps = path.get("steps", path.get("calls", []))
        return steps if isinstance(steps, list) else []
    return path if isinstance(path, list) else []


def _path_profit(path: Any) -> int | float | None:
    if isinstance(path, dict):
        for name in ("profit", "estimated_profit", "expected_profit"):
            if _is_number(path.get(name)):
                return path[name]
    return None


def _reduce_path(text: str, config: ReducerConfig) -> ReductionResult:
    data = _load_json(text)
    if isinstance(data, dict):
        paths = data["paths"] if isinstance(data.get("paths"), list) else [data]
    elif isinstance(data, list) and all(isinstance(p, dict) and "steps" in p for p in data):
        paths = data
    elif isinstance(data, list):
        paths = [{"steps": data}]
    else:
        raise ValueError("attack path must be a JSON object or list")

    step_counts = [len(_steps(p)) for p in paths]
    node_count = sum(step_counts)
    edge_count = sum(max(n - 1, 0) for n in step_counts)
    profits = [p for p in (_path_profit(path) for path in paths) if p is not None]

    top_paths = []
    for index, path in _rank(paths, config.top_k, _salience):
        steps = [_label(s) for s in _steps(path)]
        preview = steps if len(steps) <= 5 else steps[:3] + ["..."] + steps[-1:]
        entry: dict[str, Any] = {
            "name": _label(path) if isinstance(path, dict) and any(path.get(f) for f in _LABEL_FIELDS) else f"path {index + 1}",
            "steps": len(steps),
            "preview": " -> ".join(preview),
        }
        if isinstance(path, dict) and path.get("severity") is not None:
            entry["severity"] = path["severity"]
        profit = _path_profit(path)
        if profit is not None:
            entry["profit"] = profit
        top_paths.append(entry)

    lines = [f"attack paths: {len(paths)} ({node_count} steps, {edge_count} transitions)"]
    if profits:
        lines.append(f"total estimated profit: {sum(profits)}")
    for p in top_paths:
        extra = f" profit={p['profit']}" if "profit" in p else ""
        lines.append(f"  {p['name']} [{p['steps']} steps]{extra}: {_clip(p['preview'], 300)}")

    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=bool(paths),
        extracted_metadata={
            "path_count": len(paths),
            "node_count": node_count,
            "edge_count": edge_count,
            "top_paths": top_paths,
            "total_profit": sum(profits) if profits else None,
        },
        kind=ArtifactKind.PATH.value,
    )


# ── Forge / test logs ────────────────────────────────────────────────

_MAX_LOG_LINE = 4000

_TEST_LINE = re.compile(
    r"^\s*\[(?P<verdict>PASS|FAIL|SKIP)(?P<reason>.*?)\]\s+(?P<name>[A-Za-z_$][\w$]*)(?:\((?P<args>[^)]*)\))?(?P<rest>.*)$"
)
_GAS = re.compile(r"gas:\s*(\d+)")
_DURATION = re.compile(r"\((\d+(?:\.\d+)?\s?(?:ms|s|µs|us|ns))\)")
_RUNS = re.compile(r"runs:\s*(\d+)")
_REVERT_TRACE = re.compile(r"\[Revert\]\s*(.+)$")
_REVERT_INLINE = re.compile(r"(?:\brevert(?:ed)?(?: with reason)?:\s*|Error:\s*)(.+)$")
_PROFIT = re.compile(
    r"(?i)\b(?P<kind>net profit|net gain|profit|gain|loss|pnl)\s*(?:\([^)]{0,40}\))?\s*[:=]\s*"
    r"(?P<sign>[-+])?\s*\$?\s*(?P<amount>\d[\d,_]{0,40}(?:\.\d+)?)\s*(?P<token>[A-Za-z][A-Za-z0-9]{1,10})?"
)
_SUITE = re.compile(r"Suite result:\s*(ok|FAILED)\.\s*(\d+) passed;\s*(\d+) failed;\s*(\d+) skipped")


def _clean_reason(raw: str) -> str | None:
    reason = raw.strip()
    for prefix in (". Reason:", ":"):
        if reason.startswith(prefix):
            reason = reason[len(prefix):].strip()
    return reason or None


def _reduce_forge_logs(text: str, config: ReducerConfig) -> ReductionResult:
    tests: list[dict[str, Any]] = []
    reverts: list[str] = []
    profits: list[dict[str, Any]] = []
    suites: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None

    for line in text.splitlines():
        if len(line) > _MAX_LOG_LINE:
            continue
        m = _TEST_LINE.match(line)
        if m:
            rest = m.group("rest")
            current = {"name": m.group("name"), "status": m.group("verdict").lower()}
            reason = _clean_reason(m.group("reason"))
            if reason:
                current["reason"] = _clip(reason)
                reverts.append(_clip(reason))
            gas = _GAS.search(rest)
            if gas:
                current["gas"] = int(gas.group(1))
            duration = _DURATION.search(rest)
            if duration:
                current["duration"] = duration.group(1).replace(" ", "")
            runs = _RUNS.search(rest)
            if runs:
                current["runs"] = int(runs.group(1))
            if len(tests) < config.max_items:
                tests.append(current)
            continue

        suite = _SUITE.search(line)
        if suite:
            suites.append({
                "ok": suite.group(1) == "ok",
                "passed": int(suite.group(2)),
                "failed": int(suite.group(3)),
                "skipped": int(suite.group(4)),
            })
            continue

        revert = _REVERT_TRACE.search(line) or _REVERT_INLINE.search(line)
        if revert:
            reverts.append(_clip(revert.group(1)))

        for p in _PROFIT.finditer(line):
            amount = _parse_amount(p.group("amount"))
            kind = "loss" if p.group("kind").lower() == "loss" else "profit"
            if p.group("sign") == "-":
                amount = -amount
            record: dict[str, Any] = {"kind": kind, "amount": amount}
            if p.group("token"):
                record["token"] = p.group("token")
            if current is not None:
                record["test"] = current["name"]
                if kind not in current:
                    current[kind] = amount
                    if "token" in record:
                        current[f"{kind}_token"] = record["token"]
            if len(profits) < config.max_items:
                profits.append(record)

    passed = sum(1 for t in tests if t["status"] == "pass")
    failed = sum(1 for t in tests if t["status"] == "fail")
    skipped = sum(1 for t in tests if t["status"] == "skip")
    reverts = _unique(reverts, config.max_items)

    lines = [f"forge: {len(tests)} tests ({passed} passed, {failed} failed, {skipped} skipped)"]
    for t in tests[:config.top_k]:
        detail = []
        if "duration" in t:
            detail.append(t["duration"])
        if "gas" in t:
            detail.append(f"gas {t['gas']}")
        line = f"[{t['status'].upper()}] {t['name']}"
        if detail:
            line += f" ({', '.join(detail)})"
        if "reason" in t:
            line += f": {t['reason']}"
        for kind in ("profit", "loss"):
            if kind in t:
                line += f" {kind}={t[kind]}{' ' + t[kind + '_token'] if kind + '_token' in t else ''}"
        lines.append(line)
    if len(tests) > config.top_k:
        lines.append(f"... {len(tests) - config.top_k} more tests")
    if reverts:
        lines.append("revert reasons: " + "; ".join(reverts[:config.top_k]))
    if profits:
        lines.append("profit/loss: " + ", ".join(
            f"{r['kind']} {r['amount']}{' ' + r['token'] if 'token' in r else ''}" for r in profits[:config.top_k]
        ))
    if not tests and not profits and not reverts:
        lines.append(_head_tail(text, config.max_summary_chars // 2))

    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=failed > 0 or bool(profits),
        extracted_metadata={
            "tests": tests,
            "passed": passed,
            "failed": failed,
            "skipped": skipped,
            "revert_reasons": reverts,
            "profits": profits,
            "suites": suites,
        },
        kind=ArtifactKind.FORGE_LOGS.value,
    )


# ── Address lists ────────────────────────────────────────────────────

_ADDRESS = re.compile(r"(?<![0-9a-fA-Fx])0x[0-9a-fA-F]{40}(?![0-9a-fA-F])")
_LABELED = re.compile(r"^\s*[-*]?\s*(?P<label>[^:=\n]{1,80}?)\s*[:=]\s*(?P<addr>0x[0-9a-fA-F]{40})(?![0-9a-fA-F])")


def _json_addresses(data: Any, label: str | None = None) -> list[tuple[str, str | None]]:
    """Collect (address, label) pairs from any JSON shape; keys label their values."""
    if isinstance(data, str):
        if _ADDRESS.fullmatch(data.strip()):
            return [(data.strip(), label)]
        return [(a, None) for a in _ADDRESS.findall(data)]
    entries: list[tuple[str, str | None]] = []
    if isinstance(data, dict):
        name = data.get("label", data.get("name"))
        own = str(name) if name is not None else label
        for key, value in data.items():
            if key == "address":
                entries.extend(_json_addresses(value, own))
            elif key not in ("label", "name"):
                entries.extend(_json_addresses(value, str(key)))
    elif isinstance(data, list):
        for item in data:
            entries.extend(_json_addresses(item))
    return entries


def _address_entries(text: str) -> list[tuple[str, str | None]]:
    if text.lstrip()[:1] in ("{", "["):
        try:
            entries = _json_addresses(_load_json(text))
        except ValueError:
            entries = []
        if entries:
            return entries

    entries = []
    for line in text.splitlines():
        labeled = _LABELED.match(line)
        if labeled:
            entries.append((labeled.group("addr"), labeled.group("label").strip()))
            rest = line[labeled.end():]
        else:
            rest = line
        entries.extend((a, None) for a in _ADDRESS.findall(rest))
    return entries


def _reduce_address_list(text: str, config: ReducerConfig) -> ReductionResult:
    seen: dict[str, str] = {}
    labels: dict[str, str] = {}
    for address, label in _address_entries(text):
        if not _ADDRESS.fullmatch(address):
            continue
        key = address.lower()
        if key not in seen:
            seen[key] = address
        if label and seen[key] not in labels:
            labels[seen[key]] = _clip(label, 80)

    addresses = list(seen.values())
    kept = addresses[:config.max_items]
    lines = [f"addresses: {len(addresses)} unique"]
    for a in addresses[:config.top_k]:
        lines.append(f"  {a}" + (f" ({labels[a]})" if a in labels else ""))
    if len(addresses) > config.top_k:
        lines.append(f"  ... {len(addresses) - config.top_k} more")

    return ReductionResult(
        summary=_cap("\n".join(lines), config.max_summary_chars),
        should_store_raw=len(addresses) > config.max_items,
        extracted_metadata={
            "address_count": len(addresses),
            "addresses": kept,
            "labels": {a: labels[a] for a in kept if a in labels},
            "truncated": len(addresses) > config.max_items,
        },
        kind=ArtifactKind.ADDRESS_LIST.value,
    )


# ── Generic fallback ─────────────────────────────────────────────────

_BYTECODE = re.compile(r"0x[0-9a-fA-F]{200,}")


def _reduce_generic(text: str, config: ReducerConfig) -> ReductionResult:
    line_count = text.count("\n") + 1 if text else 0
    has_bytecode = _BYTECODE.search(text) is not None
    truncated = len(text) > config.max_summary_chars

    if truncated:
        header = f"[{len(text)} chars, {line_count} lines]\n"
        summary = header + _head_tail(text, config.max_summary_chars - len(header))
    else:
        summary = text

    return ReductionResult(
        summary=_cap(summary, config.max_summary_chars),
        should_store_raw=truncated or has_bytecode,
        extracted_metadata={
            "char_count": len(text),
            "line_count": line_count,
            "truncated": truncated,
            "contains_bytecode": has_bytecode,
        },
        kind=ArtifactKind.GENERIC.value,
    )


# ── Dispatcher ───────────────────────────────────────────────────────

_REDUCERS: dict[str, Reducer] = {
    ArtifactKind.SOURCE.value: _reduce_source,
    ArtifactKind.ABI.value: _reduce_abi,
    ArtifactKind.GRAPH.value: _reduce_graph,
    ArtifactKind.INVARIANT.value: _reduce_invariant,
    ArtifactKind.PATH.value: _reduce_path,
    ArtifactKind.FORGE_LOGS.value: _reduce_forge_logs,
    ArtifactKind.ADDRESS_LIST.value: _reduce_address_list,
    ArtifactKind.GENERIC.value: _reduce_generic,
}

_ALIASES = {
    "solidity": "source",
    "code": "source",
    "interface": "abi",
    "forge": "forge_logs",
    "forge_log": "forge_logs",
    "test_logs": "forge_logs",
    "addresses": "address_list",
    "invariants": "invariant",
    "attack_path": "path",
    "paths": "path",
    "call_graph": "graph",
    "dependency_graph": "graph",
}


def available_kinds() -> list[str]:
    return [k.value for k in ArtifactKind]


def normalize_kind(kind: str | ArtifactKind | None) -> str:
    """Canonical kind name; anything unrecognized becomes 'generic'."""
    if isinstance(kind, ArtifactKind):
        return kind.value
    name = str(kind or "").strip().lower().replace("-", "_").replace(" ", "_")
    name = _ALIASES.get(name, name)
    return name if name in _REDUCERS else ArtifactKind.GENERIC.value


def _fallback(result: ReductionResult, kind: str, error: str) -> ReductionResult:
    return replace(result, extracted_metadata={**result.extracted_metadata, "fallback_from": kind, "error": error})


def coerce_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    try:
        return json.dumps(content, default=str)
    except (TypeError, ValueError):
        return str(content)


def reduce_by_kind(
    kind: str | ArtifactKind | None,
    content: Any,
    config: ReducerConfig | None = None,
) -> ReductionResult:
    """Reduce content with the reducer for kind (generic when unknown)."""
    config = config or DEFAULT_REDUCER_CONFIG
    name = normalize_kind(kind)
    text = coerce_text(content)

    clipped = len(text) > config.max_input_chars
    if clipped:
        text = text[:config.max_input_chars]

    reducer = _REDUCERS[name]
    try:
        result = reducer(text, config)
    except Exception as exc:  # reduction must never block the pipeline
        log.warning("%s reducer failed (%s); using generic reducer", name, type(exc).__name__)
        result = _fallback(_reduce_generic(text, config), name, _clip(str(exc)))

    if clipped:
        result = replace(
            result,
            should_store_raw=True,
            extracted_metadata={**result.extracted_metadata, "input_clipped": True},
        )
    return result
