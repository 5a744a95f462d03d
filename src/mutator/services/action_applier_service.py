# src/mutator/services/action_applier_service.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Sequence

from bs4 import Tag

from mutator.dom.document import MarkupDocument
from mutator.model import (
    ACTION_ADAPTER,
    ACTION_TYPES,
    ActionBase,
    ActionOutcome,
    AddClassAction,
    AppendHtmlAction,
    RemoveElementAction,
    ReplaceTextAction,
    SetAttributeAction,
)

logger = logging.getLogger(__name__)

# Selectors that address the whole document; destructive edits on them are refused
FORBIDDEN_TARGETS = frozenset({"html", "body"})
DETAIL_LIMIT = 200


def to_text(value: Any) -> str:
    """String conversion for model-supplied scalars (booleans as 'true'/'false')."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ActionApplierService:
    """
    Executes a parsed action list against a MarkupDocument, in order.

    Every input action yields exactly one ActionOutcome. A fault inside one
    action is recorded as an 'exception' outcome and never aborts the rest
    of the batch.
    """

    def __init__(self):
        self._handlers: Dict[type, Callable[..., ActionOutcome]] = {
            ReplaceTextAction: self._replace_text,
            SetAttributeAction: self._set_attribute,
            AddClassAction: self._add_class,
            RemoveElementAction: self._remove_element,
            AppendHtmlAction: self._append_html,
        }

    def apply(self, document: MarkupDocument, actions: Sequence[Any]) -> List[ActionOutcome]:
        outcomes = [self._apply_one(document, raw) for raw in actions]
        applied = sum(1 for o in outcomes if o.applied)
        logger.info("Applied %d of %d action(s).", applied, len(outcomes))
        return outcomes

    def _apply_one(self, document: MarkupDocument, raw: Any) -> ActionOutcome:
        action_type = raw.get("type") if isinstance(raw, dict) else None
        if action_type not in ACTION_TYPES:
            logger.info("Ignoring action with unknown type: %r", action_type)
            return ActionOutcome(
                action=action_type if isinstance(action_type, str) else None,
                applied=False,
                reason="unknown_type",
            )

        selector = raw.get("selector")
        if not isinstance(selector, str) or not selector:
            logger.info("Ignoring '%s' action without a selector.", action_type)
            return ActionOutcome(action=action_type, applied=False, reason="invalid_selector")

        try:
            action = ACTION_ADAPTER.validate_python(raw)
            nodes = document.query(action.selector)
            if not nodes:
                logger.info("Selector not found: %s", selector)
                return ActionOutcome(action=action_type, selector=selector, applied=False, reason="not_found")

            forbidden = selector.strip().lower() in FORBIDDEN_TARGETS
            return self._handlers[type(action)](document, action, nodes, forbidden)
        except Exception as e:
            logger.warning("Error applying '%s' on '%s': %s", action_type, selector, e)
            return ActionOutcome(
                action=action_type,
                selector=selector,
                applied=False,
                reason="exception",
                detail=str(e)[:DETAIL_LIMIT],
            )

    # -------- Handlers --------

    @staticmethod
    def _blocked(action: ActionBase) -> ActionOutcome:
        logger.info("%s on '%s' blocked: whole-document target.", action.type, action.selector)
        return ActionOutcome(action=action.type, selector=action.selector, applied=False, reason="forbidden_target")

    def _replace_text(
            self, document: MarkupDocument, action: ReplaceTextAction, nodes: List[Tag], forbidden: bool
    ) -> ActionOutcome:
        if forbidden:
            return self._blocked(action)
        # Never fall back to an empty string when no value was given
        if action.value is None:
            return ActionOutcome(action=action.type, selector=action.selector, applied=False, reason="missing_value")

        replacement = to_text(action.value)
        search = action.search
        for node in nodes:
            if isinstance(search, str) and search:
                document.set_text(node, document.get_text(node).replace(search, replacement))
            else:
                document.set_text(node, replacement)

        return ActionOutcome(action=action.type, selector=action.selector, applied=True, count=len(nodes))

    @staticmethod
    def _set_attribute(
            document: MarkupDocument, action: SetAttributeAction, nodes: List[Tag], _forbidden: bool
    ) -> ActionOutcome:
        if not action.attribute:
            return ActionOutcome(action=action.type, selector=action.selector, applied=False, reason="missing_attribute")

        value = "" if action.value is None else to_text(action.value)
        for node in nodes:
            document.set_attribute(node, action.attribute, value)

        return ActionOutcome(
            action=action.type,
            selector=action.selector,
            attribute=action.attribute,
            applied=True,
            count=len(nodes),
        )

    @staticmethod
    def _add_class(
            document: MarkupDocument, action: AddClassAction, nodes: List[Tag], _forbidden: bool
    ) -> ActionOutcome:
        if not action.class_name:
            return ActionOutcome(action=action.type, selector=action.selector, applied=False, reason="missing_className")

        for node in nodes:
            document.add_class(node, action.class_name)

        return ActionOutcome(
            action=action.type,
            selector=action.selector,
            class_name=action.class_name,
            applied=True,
            count=len(nodes),
        )

    def _remove_element(
            self, document: MarkupDocument, action: RemoveElementAction, nodes: List[Tag], forbidden: bool
    ) -> ActionOutcome:
        if forbidden:
            return self._blocked(action)

        for node in nodes:
            document.remove(node)

        return ActionOutcome(action=action.type, selector=action.selector, applied=True, count=len(nodes))

    @staticmethod
    def _append_html(
            document: MarkupDocument, action: AppendHtmlAction, nodes: List[Tag], _forbidden: bool
    ) -> ActionOutcome:
        fragment = action.html or ""
        for node in nodes:
            document.append_fragment(node, fragment)

        return ActionOutcome(action=action.type, selector=action.selector, applied=True, count=len(nodes))
