# src/mutator/controllers/report_controller.py
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from mutator.errors import InvalidInputError
from mutator.managers.audit_log_manager import AuditLogManager
from mutator.model import ApplyReportRequest

logger = logging.getLogger(__name__)


class ApplyReportController:
    """Stores the client's report of which suggested actions it executed."""

    def __init__(self, audit_log: Optional[AuditLogManager] = None):
        self.audit_log = audit_log or AuditLogManager()

    def handle(self, payload: Any) -> Dict[str, Any]:
        body = payload if isinstance(payload, dict) else {}
        try:
            report = ApplyReportRequest.model_validate(body)
        except ValidationError as e:
            raise InvalidInputError("invalid executed array") from e

        self.audit_log.record_apply_report(
            report.executed,
            reasoning=report.reasoning,
            confidence=report.confidence,
            meta=report.meta,
        )
        return {"success": True}
