# src/mutator/services/response_parse_service.py
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import json_repair

from mutator.errors import InvalidJsonError, MissingActionsError

logger = logging.getLogger(__name__)

# Greedy: from the first '{' to the last '}' of the reply
BRACE_BLOCK = re.compile(r"\{[\s\S]*\}")

ParseStrategy = Callable[[str], Any]


def _brace_block(text: str) -> str:
    match = BRACE_BLOCK.search(text)
    if not match:
        raise ValueError("reply contains no JSON object")
    return match.group(0)


def _balanced_block(text: str) -> str:
    """
    Returns the first {...} block whose brackets close, skipping over quoted
    strings. A reply cut off mid-object never closes and is rejected.
    """
    start = text.find("{")
    if start < 0:
        raise ValueError("reply contains no JSON object")

    depth = 0
    quote = None
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    raise ValueError("JSON object is not closed (truncated reply?)")


def parse_direct(text: str) -> Any:
    """Strict parse of the whole reply."""
    return json.loads(text)


def parse_brace_block(text: str) -> Any:
    """Strict parse of the outermost {...} block (strips prose and code fences)."""
    return json.loads(_brace_block(text))


def parse_lenient(text: str) -> Any:
    """
    Lenient parse of the first complete {...} block: tolerates trailing
    commas, single quotes, unquoted keys and comments. Only a JSON object is
    accepted, and only when its brackets are balanced.
    """
    result = json_repair.loads(_balanced_block(text))
    if not isinstance(result, dict):
        raise ValueError("lenient grammar could not recover a JSON object")
    return result


DEFAULT_STRATEGIES: Tuple[Tuple[str, ParseStrategy], ...] = (
    ("direct", parse_direct),
    ("brace_block", parse_brace_block),
    ("lenient", parse_lenient),
)


class ResponseParseService:
    """
    Recovers a JSON payload from untrusted model text.

    Strategies are tried in order and the first success wins; when all of
    them fail an InvalidJsonError carrying the raw reply is raised.
    """

    def __init__(self, strategies: Optional[Sequence[Tuple[str, ParseStrategy]]] = None):
        self.strategies: List[Tuple[str, ParseStrategy]] = list(strategies or DEFAULT_STRATEGIES)

    def parse(self, raw: str) -> Any:
        if not isinstance(raw, str):
            raise InvalidJsonError("Model reply is not text", raw=raw)

        last_error: Optional[Exception] = None
        for name, strategy in self.strategies:
            try:
                parsed = strategy(raw)
            except Exception as e:
                logger.debug("Parse strategy '%s' failed: %s", name, e)
                last_error = e
                continue
            logger.debug("Model reply parsed with strategy '%s'.", name)
            return parsed

        logger.warning("Model reply could not be parsed as JSON (%d chars).", len(raw))
        raise InvalidJsonError(
            "Model reply is not valid JSON.",
            detail=str(last_error) if last_error else None,
            raw=raw,
        )

    def parse_actions(self, raw: str) -> Dict[str, Any]:
        """
        Parses the reply and requires an object whose 'actions' field is an array.
        `{"actions": []}` is valid and means no edit applies.
        """
        parsed = self.parse(raw)
        if not isinstance(parsed, dict) or not isinstance(parsed.get("actions"), list):
            raise MissingActionsError("The JSON does not contain a valid 'actions' array.", raw=parsed)
        return parsed
