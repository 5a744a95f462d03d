"""
Mutator - Edit Server
Flask application exposing the structural edit, suggest and apply-report endpoints.
"""
import logging
from typing import Optional

from flask import Flask

from mutator.controllers.edit_controller import EditController
from mutator.controllers.report_controller import ApplyReportController
from mutator.controllers.suggest_controller import SuggestController
from mutator.core.managers.config_manager import config_manager
from mutator.managers.audit_log_manager import AuditLogManager
from mutator.server.routers.edit_router import edit_router
from mutator.services.model_gateway_service import ModelGateway

logger = logging.getLogger(__name__)


def create_app(
        edit_controller: Optional[EditController] = None,
        suggest_controller: Optional[SuggestController] = None,
        report_controller: Optional[ApplyReportController] = None,
        diagnostics: Optional[bool] = None,
) -> Flask:
    """
    Application factory wiring the controllers into the app config for blueprint access.
    """
    flask_app = Flask(__name__)

    # 1. Shared collaborators (one gateway and audit log for all controllers)
    gateway = None
    if edit_controller is None or suggest_controller is None:
        gateway = ModelGateway.from_config()
    audit_log = None
    if suggest_controller is None or report_controller is None:
        audit_log = AuditLogManager()

    # 2. Controllers
    flask_app.config['EDIT_CONTROLLER'] = edit_controller or EditController(gateway=gateway)
    flask_app.config['SUGGEST_CONTROLLER'] = suggest_controller or SuggestController(gateway=gateway, audit_log=audit_log)
    flask_app.config['REPORT_CONTROLLER'] = report_controller or ApplyReportController(audit_log=audit_log)
    flask_app.config['DIAGNOSTICS'] = (
        config_manager.get_nested("server.diagnostics", False) if diagnostics is None else diagnostics
    )

    # 3. Register Blueprints
    flask_app.register_blueprint(edit_router)

    logger.debug("Edit server created (diagnostics=%s).", flask_app.config['DIAGNOSTICS'])
    return flask_app
