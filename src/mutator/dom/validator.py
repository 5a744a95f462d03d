# src/mutator/dom/validator.py
import logging

from .document import MarkupDocument
from ..errors import AppliedHtmlParseError

logger = logging.getLogger(__name__)


def validate_markup(source: str) -> MarkupDocument:
    """
    Re-parses serialized markup with the ingestion parser.

    Raises AppliedHtmlParseError carrying the parser's message; no repair
    is attempted.
    """
    try:
        return MarkupDocument(source)
    except Exception as e:
        logger.warning("Post-validation failed: %s", e)
        raise AppliedHtmlParseError(str(e) or type(e).__name__) from e
