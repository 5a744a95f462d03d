# src/mutator/services/action_sanitizer_service.py
import json
import logging
from typing import Any, Dict, Iterable, List

from mutator.errors import InvalidModelOutputError
from mutator.model import SuggestResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACTIONS = 10
DEFAULT_BLOCKED_TOKENS = ("audio", "script")


def _safe_string(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)


def _lowered(value: Any) -> str:
    return str(value or "").lower()


class ActionSanitizerService:
    """
    Filters model output on the suggest-and-report path.

    These actions are only reported back to the client, never applied here,
    so safety relies on selector and type matching: anything that mentions a
    blocked token is dropped and the list is truncated.
    """

    def __init__(self, max_actions: int = DEFAULT_MAX_ACTIONS, blocked_tokens: Iterable[str] = DEFAULT_BLOCKED_TOKENS):
        self.max_actions = max_actions
        self.blocked_tokens = tuple(t.lower() for t in blocked_tokens)

    def is_blocked(self, action: Dict[str, Any]) -> bool:
        fields = (
            _lowered(action.get("selector")),
            _lowered(action.get("type")),
            _lowered(action.get("action")),
        )
        return any(token in field for token in self.blocked_tokens for field in fields)

    def sanitize(self, output: Any) -> SuggestResult:
        if not isinstance(output, dict):
            raise InvalidModelOutputError(raw=output)

        confidence = output.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0

        raw_actions = output.get("actions")
        actions: List[Dict[str, Any]] = []
        dropped = 0
        for action in raw_actions if isinstance(raw_actions, list) else []:
            if not isinstance(action, dict):
                continue
            if self.is_blocked(action):
                dropped += 1
                continue
            actions.append(action)
            if len(actions) >= self.max_actions:
                break

        if dropped:
            logger.info("Sanitizer dropped %d action(s) touching blocked targets.", dropped)

        return SuggestResult(
            reasoning=_safe_string(output.get("reasoning") or ""),
            confidence=confidence,
            actions=actions,
        )
