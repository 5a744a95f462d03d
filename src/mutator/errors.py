# src/mutator/errors.py
"""
Error taxonomy of the mutation engine.

Every failure that aborts a request carries a stable machine-readable code,
a human message and the HTTP status the server maps it to. Faults inside a
single action never reach this module: they are recorded in the outcome log.
"""
from typing import Any, Dict, Optional


class MutatorError(Exception):
    """Base class for request-level failures."""
    code = "SERVER_ERROR"
    http_status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None, raw: Any = None):
        self.message = message or self.default_message
        self.detail = detail
        # Upstream bodies and raw replies; only exposed in diagnostic mode
        self.raw = raw
        super().__init__(self.message)

    def to_payload(self, diagnostics: bool = False) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.detail:
            error["detail"] = self.detail
        if diagnostics and self.raw is not None:
            error["raw"] = self.raw
        return {"error": error}


# --- Input ---

class InputError(MutatorError):
    code = "INVALID_INPUT"
    http_status = 400
    default_message = "Missing or malformed request parameters"


class InvalidInputError(InputError):
    pass


# --- Upstream (model transport) ---

class UpstreamError(MutatorError):
    code = "MODEL_CALL_FAILED"
    http_status = 502
    default_message = "Model call failed"


class ModelCallFailedError(UpstreamError):
    pass


class ModelTimeoutError(UpstreamError):
    code = "MODEL_TIMEOUT"
    http_status = 504
    default_message = "Model call timed out"


class ModelError(UpstreamError):
    code = "MODEL_ERROR"
    default_message = "Model provider returned an error"

    def __init__(self, status: int, body: str):
        super().__init__(f"Model provider returned HTTP {status}", raw=body)
        self.status = status
        self.body = body


class EmptyModelReplyError(UpstreamError):
    code = "EMPTY_MODEL_REPLY"
    default_message = "Model returned an empty reply"


# --- Reply parsing / schema ---

class ParseError(MutatorError):
    code = "INVALID_JSON"
    http_status = 422
    default_message = "Model reply is not valid JSON"


class InvalidJsonError(ParseError):
    pass


class SchemaError(MutatorError):
    code = "MISSING_ACTIONS"
    http_status = 422
    default_message = "Model JSON does not contain a valid 'actions' array"


class MissingActionsError(SchemaError):
    pass


class InvalidModelOutputError(SchemaError):
    code = "INVALID_MODEL_OUTPUT"
    default_message = "Invalid model output"


# --- Apply / integrity ---

class ApplyActionsFailedError(MutatorError):
    code = "APPLY_ACTIONS_FAILED"
    http_status = 500
    default_message = "Applying actions failed"


class IntegrityError(MutatorError):
    code = "APPLIED_HTML_PARSE_ERROR"
    http_status = 422
    default_message = "Mutated document could not be parsed"


class AppliedHtmlParseError(IntegrityError):
    pass


# --- Persistence ---

class PersistenceError(MutatorError):
    code = "WRITE_ERROR"
    http_status = 500
    default_message = "Error writing file"


class InvalidPathError(PersistenceError):
    code = "INVALID_PATH"
    http_status = 400
    default_message = "filePath is outside the allowed directory"


class WriteError(PersistenceError):
    pass
