import json
from unittest.mock import MagicMock

import pytest

from mutator.controllers.report_controller import ApplyReportController
from mutator.controllers.suggest_controller import NOT_CONFIGURED_REASONING, SuggestController
from mutator.errors import InvalidInputError, InvalidJsonError
from mutator.managers.audit_log_manager import AuditLogManager

PAYLOAD = {"prompt": "Make the hero brighter", "structure": {"sections": [{"id": "hero"}]}}


def read_lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def audit_log(tmp_path):
    return AuditLogManager(log_dir=tmp_path, enabled=True)


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.is_configured = True
    return gateway


def test_suggestion_is_sanitized_and_logged(gateway, audit_log, tmp_path):
    gateway.complete.return_value = json.dumps({
        "reasoning": "brighter colours",
        "confidence": 0.9,
        "actions": [
            {"selector": "#hero", "type": "style", "action": "set", "value": "bright"},
            {"selector": "audio", "type": "attribute", "action": "mute"},
        ],
    })
    controller = SuggestController(gateway=gateway, audit_log=audit_log)

    result = controller.handle(PAYLOAD)

    assert result == {
        "reasoning": "brighter colours",
        "confidence": 0.9,
        "actions": [{"selector": "#hero", "type": "style", "action": "set", "value": "bright"}],
    }
    _, kwargs = gateway.complete.call_args
    assert kwargs["max_tokens"] == 800
    assert kwargs["temperature"] == 0.2

    entry = read_lines(tmp_path / AuditLogManager.ACTIONS_LOG)[0]
    assert entry["prompt"] == "Make the hero brighter"
    assert entry["safeResponse"] == result
    assert len(entry["parsedModelResponse"]["actions"]) == 2


def test_unconfigured_gateway_returns_no_op(gateway, audit_log):
    gateway.is_configured = False
    result = SuggestController(gateway=gateway, audit_log=audit_log).handle(PAYLOAD)

    assert result == {"reasoning": NOT_CONFIGURED_REASONING, "confidence": 0, "actions": []}
    gateway.complete.assert_not_called()


@pytest.mark.parametrize("payload", [None, {"prompt": "x"}, {"prompt": "", "structure": {}}, {"prompt": "x", "structure": "s"}])
def test_invalid_suggest_request(gateway, audit_log, payload):
    with pytest.raises(InvalidInputError):
        SuggestController(gateway=gateway, audit_log=audit_log).handle(payload)


def test_unparseable_suggestion(gateway, audit_log):
    gateway.complete.return_value = "no json"
    with pytest.raises(InvalidJsonError):
        SuggestController(gateway=gateway, audit_log=audit_log).handle(PAYLOAD)


def test_apply_report_is_logged(audit_log, tmp_path):
    controller = ApplyReportController(audit_log=audit_log)
    result = controller.handle({
        "executed": [{"selector": "#hero"}],
        "reasoning": "ok",
        "confidence": 0.5,
        "meta": {"client": "editor"},
    })

    assert result == {"success": True}
    entry = read_lines(tmp_path / AuditLogManager.APPLY_REPORT_LOG)[0]
    assert entry["executedCount"] == 1
    assert entry["meta"] == {"client": "editor"}


def test_apply_report_requires_array(audit_log):
    with pytest.raises(InvalidInputError) as exc:
        ApplyReportController(audit_log=audit_log).handle({"executed": "all of them"})
    assert exc.value.message == "invalid executed array"


def test_disabled_audit_log_writes_nothing(tmp_path):
    log = AuditLogManager(log_dir=tmp_path / "logs", enabled=False)
    assert log.record_apply_report([]) is False
    assert not (tmp_path / "logs").exists()
