"""
ABI fragment parsing.

Accepts the two common ABI notations and normalizes both into the same
descriptors:

- human-readable signatures::

      "function balanceOf(address owner) view returns (uint256)"
      "event Transfer(address indexed from, address indexed to, uint256 value)"

- JSON fragments as emitted by solc (``{"type": "function", "name": ..., "inputs": [...]}``)

Constructor, fallback, receive and error fragments are accepted and skipped.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from eth_abi import is_encodable_type

from ethlite.abi.types import AbiEvent, AbiFunction, AbiParam, ContractAbi, Mutability
from ethlite.errors import AbiMismatch

Fragment = Union[str, Mapping[str, Any]]

_IDENT = r"[A-Za-z_$][A-Za-z0-9_$]*"
_HEADER_RE = re.compile(rf"^\s*(function|event|constructor|error|fallback|receive)?\s*({_IDENT})?\s*\(")
_ARRAY_SUFFIX_RE = re.compile(r"^((?:\[\d*\])*)")
_SKIPPED_KINDS = {"constructor", "error", "fallback", "receive"}
_PARAM_MODIFIERS = {"memory", "calldata", "storage", "payable"}
_FUNCTION_MODIFIERS = {"external", "public", "internal", "private", "virtual", "override"}
_MUTABILITIES = {m.value for m in Mutability}


def split_top_level(text: str) -> List[str]:
    """Split a comma-separated list, ignoring commas inside parentheses."""
    text = text.strip()
    if not text:
        return []
    out: List[str] = []
    depth = 0
    start = 0
    for idx, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise AbiMismatch(f"Unbalanced parentheses in: {text}")
        elif ch == "," and depth == 0:
            out.append(text[start:idx].strip())
            start = idx + 1
    if depth != 0:
        raise AbiMismatch(f"Unbalanced parentheses in: {text}")
    out.append(text[start:].strip())
    if any(not item for item in out):
        raise AbiMismatch(f"Empty entry in parameter list: {text}")
    return out


def _matching_paren(text: str, open_idx: int) -> int:
    depth = 0
    for idx in range(open_idx, len(text)):
        if text[idx] == "(":
            depth += 1
        elif text[idx] == ")":
            depth -= 1
            if depth == 0:
                return idx
    raise AbiMismatch(f"Unbalanced parentheses in: {text}")


def _canonical_base(type_str: str) -> str:
    if type_str == "uint":
        return "uint256"
    if type_str == "int":
        return "int256"
    if type_str == "byte":
        return "bytes1"
    return type_str


def canonical_type(type_str: str) -> str:
    """
    Normalize a type string (``uint`` -> ``uint256``, ``tuple(a,b)[]`` -> ``(a,b)[]``).

    Raises:
        AbiMismatch: If the result is not an encodable ABI type
    """
    text = type_str.strip()
    if text.startswith("tuple("):
        text = text[len("tuple"):]

    if text.startswith("("):
        close = _matching_paren(text, 0)
        # Components may carry names: "(uint256 amount, address to)"
        inner = ",".join(
            _parse_param(t, allow_indexed=False).type for t in split_top_level(text[1:close])
        )
        result = f"({inner}){text[close + 1:].strip()}"
    else:
        match = re.match(r"^([a-z]+[0-9x]*)(.*)$", text)
        if not match:
            raise AbiMismatch(f"Invalid ABI type: {type_str!r}")
        result = _canonical_base(match.group(1)) + match.group(2).replace(" ", "")

    if not is_encodable_type(result):
        raise AbiMismatch(f"Invalid ABI type: {type_str!r}")
    return result


def _parse_param(text: str, *, allow_indexed: bool) -> AbiParam:
    text = text.strip()
    if text.startswith("(") or text.startswith("tuple("):
        open_idx = text.index("(")
        close = _matching_paren(text, open_idx)
        suffix = _ARRAY_SUFFIX_RE.match(text[close + 1:]).group(1)  # type: ignore[union-attr]
        type_part = text[: close + 1] + suffix
        words = text[close + 1 + len(suffix):].split()
    else:
        tokens = text.split()
        type_part, words = tokens[0], tokens[1:]

    indexed = False
    name = ""
    for word in words:
        if word == "indexed":
            if not allow_indexed:
                raise AbiMismatch(f"'indexed' is only valid on event parameters: {text}")
            indexed = True
        elif word in _PARAM_MODIFIERS:
            continue
        elif re.fullmatch(_IDENT, word) and not name:
            name = word
        else:
            raise AbiMismatch(f"Unexpected token {word!r} in parameter: {text}")

    return AbiParam(name=name, type=canonical_type(type_part), indexed=indexed)


def _parse_params(text: str, *, allow_indexed: bool = False) -> Tuple[AbiParam, ...]:
    return tuple(_parse_param(p, allow_indexed=allow_indexed) for p in split_top_level(text))


def _parse_human(fragment: str) -> Optional[Union[AbiFunction, AbiEvent]]:
    match = _HEADER_RE.match(fragment)
    if not match:
        raise AbiMismatch(f"Cannot parse ABI fragment: {fragment!r}")
    kind = match.group(1) or "function"
    name = match.group(2) or ""
    if kind in _SKIPPED_KINDS:
        return None
    if not name:
        raise AbiMismatch(f"ABI fragment has no name: {fragment!r}")

    open_idx = match.end() - 1
    close = _matching_paren(fragment, open_idx)
    params_text = fragment[open_idx + 1 : close]
    tail = fragment[close + 1 :].strip()

    if kind == "event":
        anonymous = False
        for word in tail.split():
            if word != "anonymous":
                raise AbiMismatch(f"Unexpected token {word!r} in event: {fragment!r}")
            anonymous = True
        return AbiEvent(name=name, inputs=_parse_params(params_text, allow_indexed=True), anonymous=anonymous)

    mutability = Mutability.NONPAYABLE
    outputs: Tuple[AbiParam, ...] = ()
    while tail:
        if tail.startswith("returns"):
            rest = tail[len("returns"):].lstrip()
            if not rest.startswith("("):
                raise AbiMismatch(f"Expected '(' after returns: {fragment!r}")
            end = _matching_paren(rest, 0)
            outputs = _parse_params(rest[1:end])
            tail = rest[end + 1 :].strip()
            continue
        word, _, tail = tail.partition(" ")
        tail = tail.strip()
        if word == "constant":
            mutability = Mutability.VIEW
        elif word in _MUTABILITIES:
            mutability = Mutability(word)
        elif word not in _FUNCTION_MODIFIERS:
            raise AbiMismatch(f"Unexpected token {word!r} in function: {fragment!r}")

    return AbiFunction(
        name=name,
        inputs=_parse_params(params_text),
        outputs=outputs,
        mutability=mutability,
    )


def _json_type(entry: Mapping[str, Any]) -> str:
    raw = entry.get("type")
    if not isinstance(raw, str):
        raise AbiMismatch(f"ABI parameter without a type: {dict(entry)!r}")
    if raw.startswith("tuple"):
        components = entry.get("components")
        if not isinstance(components, list):
            raise AbiMismatch(f"Tuple parameter without components: {dict(entry)!r}")
        inner = ",".join(_json_type(c) for c in components)
        return canonical_type(f"({inner}){raw[len('tuple'):]}")
    return canonical_type(raw)


def _json_params(entries: Iterable[Mapping[str, Any]], *, allow_indexed: bool = False) -> Tuple[AbiParam, ...]:
    params = []
    for entry in entries:
        indexed = bool(entry.get("indexed", False))
        if indexed and not allow_indexed:
            raise AbiMismatch(f"'indexed' is only valid on event parameters: {dict(entry)!r}")
        params.append(AbiParam(name=entry.get("name") or "", type=_json_type(entry), indexed=indexed))
    return tuple(params)


def _parse_json(fragment: Mapping[str, Any]) -> Optional[Union[AbiFunction, AbiEvent]]:
    kind = fragment.get("type", "function")
    if kind in _SKIPPED_KINDS:
        return None
    name = fragment.get("name")
    if not isinstance(name, str) or not name:
        raise AbiMismatch(f"ABI fragment has no name: {dict(fragment)!r}")

    if kind == "event":
        return AbiEvent(
            name=name,
            inputs=_json_params(fragment.get("inputs", []), allow_indexed=True),
            anonymous=bool(fragment.get("anonymous", False)),
        )
    if kind != "function":
        raise AbiMismatch(f"Unsupported ABI fragment type: {kind!r}")

    state = fragment.get("stateMutability")
    if state is None:
        # Pre-0.4.16 compiler output
        if fragment.get("constant"):
            state = "view"
        elif fragment.get("payable"):
            state = "payable"
        else:
            state = "nonpayable"
    try:
        mutability = Mutability(state)
    except ValueError as exc:
        raise AbiMismatch(f"Unknown stateMutability {state!r} for {name}") from exc

    return AbiFunction(
        name=name,
        inputs=_json_params(fragment.get("inputs", [])),
        outputs=_json_params(fragment.get("outputs", [])),
        mutability=mutability,
    )


def _parse_fragment(fragment: Fragment) -> Optional[Union[AbiFunction, AbiEvent]]:
    if isinstance(fragment, str):
        return _parse_human(fragment)
    if isinstance(fragment, Mapping):
        return _parse_json(fragment)
    raise AbiMismatch(f"ABI fragment must be a string or mapping, got {type(fragment).__name__}")


def parse_function(fragment: Fragment) -> AbiFunction:
    """Parse a single function fragment."""
    parsed = _parse_fragment(fragment)
    if not isinstance(parsed, AbiFunction):
        raise AbiMismatch(f"Not a function fragment: {fragment!r}")
    return parsed


def parse_event(fragment: Fragment) -> AbiEvent:
    """Parse a single event fragment."""
    parsed = _parse_fragment(fragment)
    if not isinstance(parsed, AbiEvent):
        raise AbiMismatch(f"Not an event fragment: {fragment!r}")
    return parsed


def parse_abi(abi: Union[str, Sequence[Fragment]]) -> ContractAbi:
    """
    Parse a whole contract ABI.

    Args:
        abi: A list of human-readable and/or JSON fragments, or a JSON
            string holding such a list

    Returns:
        ContractAbi with all functions and events
    """
    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except json.JSONDecodeError as exc:
            raise AbiMismatch("ABI string is not valid JSON") from exc
    if isinstance(abi, Mapping) and "abi" in abi:
        abi = abi["abi"]  # Hardhat/Foundry artifact
    if not isinstance(abi, Sequence):
        raise AbiMismatch("ABI must be a list of fragments")

    functions: List[AbiFunction] = []
    events: List[AbiEvent] = []
    seen: Dict[str, str] = {}
    for fragment in abi:
        parsed = _parse_fragment(fragment)
        if parsed is None:
            continue
        key = f"{type(parsed).__name__}:{parsed.signature}"
        if key in seen:
            continue
        seen[key] = parsed.signature
        if isinstance(parsed, AbiFunction):
            functions.append(parsed)
        else:
            events.append(parsed)
    return ContractAbi(functions=tuple(functions), events=tuple(events))
