# src/mutator/controllers/suggest_controller.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from mutator.controllers.edit_controller import validation_message
from mutator.core.managers.config_manager import config_manager
from mutator.errors import InvalidInputError
from mutator.managers.audit_log_manager import AuditLogManager
from mutator.model import SuggestRequest, SuggestResult
from mutator.services.action_sanitizer_service import (
    DEFAULT_BLOCKED_TOKENS,
    DEFAULT_MAX_ACTIONS,
    ActionSanitizerService,
)
from mutator.services.model_gateway_service import ModelGateway
from mutator.services.prompt_builder_service import PromptBuilderService
from mutator.services.response_parse_service import ResponseParseService

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REASONING = "AI not configured on server; no changes applied."


class SuggestController:
    """
    Suggest-and-report path: the model proposes actions which are filtered
    and handed back to the client. Nothing is applied server side.
    """

    def __init__(
            self,
            gateway: Optional[ModelGateway] = None,
            prompt_builder: Optional[PromptBuilderService] = None,
            parser: Optional[ResponseParseService] = None,
            sanitizer: Optional[ActionSanitizerService] = None,
            audit_log: Optional[AuditLogManager] = None,
    ):
        max_actions = config_manager.get_nested("sanitizer.max_actions", DEFAULT_MAX_ACTIONS)
        self.gateway = gateway or ModelGateway.from_config()
        self.prompt_builder = prompt_builder or PromptBuilderService(suggest_max_actions=max_actions)
        self.parser = parser or ResponseParseService()
        self.sanitizer = sanitizer or ActionSanitizerService(
            max_actions=max_actions,
            blocked_tokens=config_manager.get_nested("sanitizer.blocked_tokens", DEFAULT_BLOCKED_TOKENS),
        )
        self.audit_log = audit_log or AuditLogManager()

    @staticmethod
    def parse_request(payload: Any) -> SuggestRequest:
        if not isinstance(payload, dict):
            raise InvalidInputError("Missing body")
        try:
            return SuggestRequest.model_validate(payload)
        except ValidationError as e:
            raise InvalidInputError("Missing prompt string or structure object", detail=validation_message(e)) from e

    def handle(self, payload: Any) -> Dict[str, Any]:
        request = self.parse_request(payload)

        if not self.gateway.is_configured:
            logger.info("Suggest request answered with no-op: no model configured.")
            return SuggestResult(reasoning=NOT_CONFIGURED_REASONING, confidence=0, actions=[]).model_dump()

        user_prompt = self.prompt_builder.build_suggest_prompt(request.prompt, request.structure)
        raw_reply = self.gateway.complete(
            "",
            user_prompt,
            max_tokens=config_manager.get_nested("model.suggest_max_tokens", 800),
            temperature=config_manager.get_nested("model.suggest_temperature", 0.2),
        )

        parsed = self.parser.parse(raw_reply)
        safe = self.sanitizer.sanitize(parsed).model_dump()

        self.audit_log.record_suggestion(request.prompt, request.structure, raw_reply, parsed, safe)
        return safe
