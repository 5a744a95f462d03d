# src/mutator/controllers/edit_controller.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from mutator.core.managers.config_manager import config_manager
from mutator.dom.document import MarkupDocument
from mutator.dom.summarizer import DEFAULT_GENERIC_TAGS, DEFAULT_MAX_NODES, DEFAULT_TAGS, summarize_structure
from mutator.dom.validator import validate_markup
from mutator.errors import ApplyActionsFailedError, InvalidInputError, ModelCallFailedError
from mutator.model import EditRequest
from mutator.services.action_applier_service import ActionApplierService
from mutator.services.deterministic_rewrite_service import DeterministicRewriteService
from mutator.services.file_persistence_service import FilePersistenceService
from mutator.services.model_gateway_service import ModelGateway
from mutator.services.prompt_builder_service import PromptBuilderService
from mutator.services.response_parse_service import ResponseParseService

logger = logging.getLogger(__name__)


def validation_message(error: ValidationError) -> str:
    """Flattens a pydantic error into a short 'field: problem' list."""
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{location}: {err.get('msg')}")
    return "; ".join(parts)


class EditController:
    """
    Orchestrates one edit request: the deterministic fast path when a rewrite
    option is selected, otherwise summarize -> prompt -> model -> parse ->
    apply -> post-validate -> (optional) persist.
    """

    def __init__(
            self,
            gateway: Optional[ModelGateway] = None,
            rewriter: Optional[DeterministicRewriteService] = None,
            prompt_builder: Optional[PromptBuilderService] = None,
            parser: Optional[ResponseParseService] = None,
            applier: Optional[ActionApplierService] = None,
            persistence: Optional[FilePersistenceService] = None,
    ):
        self.gateway = gateway or ModelGateway.from_config()
        self.rewriter = rewriter or DeterministicRewriteService()
        self.prompt_builder = prompt_builder or PromptBuilderService()
        self.parser = parser or ResponseParseService()
        self.applier = applier or ActionApplierService()
        self._persistence = persistence

    @property
    def persistence(self) -> FilePersistenceService:
        if self._persistence is None:
            self._persistence = FilePersistenceService()
        return self._persistence

    @staticmethod
    def parse_request(payload: Any) -> EditRequest:
        if not isinstance(payload, dict):
            raise InvalidInputError("Missing request body")
        try:
            return EditRequest.model_validate(payload)
        except ValidationError as e:
            raise InvalidInputError("Missing or invalid parameters", detail=validation_message(e)) from e

    def handle(self, payload: Any) -> Dict[str, Any]:
        request = self.parse_request(payload)

        if self.rewriter.handles(request.selected_option):
            result = self.rewriter.rewrite(request.code, request.instructions, request.selected_option)
            logger.info("Deterministic rewrite '%s' produced %d action(s).", request.selected_option, len(result.actions))
            return {
                "ok": True,
                "actionsApplied": [a.to_dict() for a in result.actions],
                "code": result.code,
            }

        return self._run_model_path(request)

    def _run_model_path(self, request: EditRequest) -> Dict[str, Any]:
        if not self.gateway.is_configured:
            raise ModelCallFailedError("No model provider is configured on the server")

        try:
            document = MarkupDocument(request.code)
        except Exception as e:
            raise InvalidInputError("code could not be parsed as markup", detail=str(e)) from e

        structure = summarize_structure(
            document,
            max_nodes=config_manager.get_nested("summarizer.max_nodes", DEFAULT_MAX_NODES),
            tags=config_manager.get_nested("summarizer.tags", DEFAULT_TAGS),
            generic_tags=config_manager.get_nested("summarizer.generic_tags", DEFAULT_GENERIC_TAGS),
        )
        system_prompt, user_prompt = self.prompt_builder.build_edit_prompts(
            structure, request.code, request.instructions
        )

        raw_reply = self.gateway.complete(system_prompt, user_prompt)
        parsed = self.parser.parse_actions(raw_reply)

        # The document is only touched once a complete action list exists
        try:
            outcomes = self.applier.apply(document, parsed["actions"])
            mutated = document.serialize()
        except Exception as e:
            logger.error("Applying actions failed: %s", e, exc_info=True)
            raise ApplyActionsFailedError(str(e)) from e

        validate_markup(mutated)

        response: Dict[str, Any] = {
            "ok": True,
            "actionsApplied": [o.to_dict() for o in outcomes],
            "code": mutated,
        }

        if request.persist and request.file_path:
            persisted = self.persistence.persist(request.file_path, mutated)
            response.update(persisted.model_dump(by_alias=True))

        return response
