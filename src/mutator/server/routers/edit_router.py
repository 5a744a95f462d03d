import logging
from typing import Tuple

from flask import Blueprint, Response, current_app, jsonify, request

from mutator.errors import MutatorError

logger = logging.getLogger(__name__)

edit_router = Blueprint('edit_router', __name__)


# --- HELPER FUNCTIONS ---

def get_controller(key: str):
    """Retrieves a controller from the Flask application context."""
    controller = current_app.config.get(key)
    if not controller:
        raise RuntimeError(f"{key} is not set in app.config")
    return controller


def dispatch(key: str) -> Tuple[Response, int]:
    """
    Runs the controller registered under `key` on the JSON body and maps
    request-level failures to their status code.
    """
    payload = request.get_json(silent=True)
    try:
        return jsonify(get_controller(key).handle(payload)), 200
    except MutatorError as e:
        logger.info("%s %s failed: %s (%s)", request.method, request.path, e.code, e.message)
        diagnostics = bool(current_app.config.get('DIAGNOSTICS'))
        return jsonify(e.to_payload(diagnostics=diagnostics)), e.http_status
    except Exception as e:
        logger.error("%s %s error: %s", request.method, request.path, e, exc_info=True)
        return jsonify({"error": {"code": "SERVER_ERROR", "message": "Internal server error"}}), 500


# --- API ROUTES ---

@edit_router.route('/ia-edit', methods=['POST'])
def ia_edit():
    """Edits a document in place, deterministically or through the model."""
    return dispatch('EDIT_CONTROLLER')


@edit_router.route('/ai-modify', methods=['POST'])
def ai_modify():
    """Returns sanitized model suggestions without applying them."""
    return dispatch('SUGGEST_CONTROLLER')


@edit_router.route('/ai-apply-report', methods=['POST'])
def ai_apply_report():
    """Records which suggested actions the client executed."""
    return dispatch('REPORT_CONTROLLER')


@edit_router.route('/health', methods=['GET'])
def health():
    gateway = getattr(current_app.config.get('EDIT_CONTROLLER'), 'gateway', None)
    return jsonify({"status": "ok", "model_configured": bool(gateway and gateway.is_configured)})
