# src/mutator/managers/audit_log_manager.py
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from mutator.core.managers.config_manager import config_manager
from mutator.core.utils.path_utils import PathUtils

logger = logging.getLogger(__name__)


class AuditLogManager:
    """
    Appends model interactions and client execution reports to JSON-lines
    files. Audit logging is best effort: a failed write is logged and the
    request carries on.
    """

    ACTIONS_LOG = "ai-actions.log"
    APPLY_REPORT_LOG = "ai-apply-report.log"

    def __init__(self, log_dir: Optional[Path] = None, enabled: Optional[bool] = None):
        configured_dir = config_manager.get_nested("audit.dir")
        self.log_dir = Path(log_dir or configured_dir or PathUtils.get_logs_dir())
        self.enabled = config_manager.get_nested("audit.enabled", True) if enabled is None else enabled

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(timezone.utc).isoformat()

    def record_suggestion(
            self,
            prompt: str,
            structure: Any,
            raw_reply: Optional[str],
            parsed: Any,
            safe: Dict[str, Any],
    ) -> bool:
        summary = structure.get("structure") if isinstance(structure, dict) and structure.get("structure") else structure
        entry = {
            "ts": self._timestamp(),
            "prompt": str(prompt)[:1000],
            "structureSummary": summary,
            "rawModelResponse": str(raw_reply)[:8000] if raw_reply is not None else None,
            "parsedModelResponse": parsed,
            "safeResponse": safe,
        }
        written = self._append(self.ACTIONS_LOG, entry)
        if written:
            logger.info("Logged AI response, actions=%d", len(safe.get("actions") or []))
        return written

    def record_apply_report(
            self,
            executed: List[Any],
            reasoning: Any = "",
            confidence: Any = None,
            meta: Any = None,
    ) -> bool:
        entry = {
            "ts": self._timestamp(),
            "executedCount": len(executed),
            "executed": executed[:50],
            "reasoning": str(reasoning if reasoning is not None else "")[:2000],
            "confidence": confidence,
            "meta": meta if isinstance(meta, dict) else None,
        }
        written = self._append(self.APPLY_REPORT_LOG, entry)
        if written:
            logger.info("Logged executed actions=%d", len(executed))
        return written

    def _append(self, filename: str, entry: Dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.log_dir / filename, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            return True
        except OSError as e:
            logger.error("Audit log write to %s failed: %s", filename, e)
            return False
