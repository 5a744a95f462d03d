import json
import threading

import pytest
import requests

from mutator.errors import (
    EmptyModelReplyError,
    ModelCallFailedError,
    ModelError,
    ModelTimeoutError,
)
from mutator.services.model_gateway_service import CancellationToken, ModelGateway


def make_response(status=200, body=None, text=None):
    response = requests.Response()
    response.status_code = status
    if text is None:
        text = json.dumps(body)
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Records post() calls and answers with a canned response or exception."""

    def __init__(self, response=None, error=None, block=None):
        self.response = response
        self.error = error
        self.block = block
        self.calls = []
        self.closed = False

    def post(self, **kwargs):
        self.calls.append(kwargs)
        if self.block is not None:
            self.block.wait(2)
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def make_gateway(session, **kwargs):
    defaults = dict(api_key="sk-test", model_name="test-model", timeout_ms=2000)
    defaults.update(kwargs)
    return ModelGateway(session_factory=lambda: session, **defaults)


def chat_body(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_complete_returns_reply_text():
    session = FakeSession(make_response(body=chat_body('{"actions": []}')))
    gateway = make_gateway(session)

    assert gateway.complete("system rules", "user prompt") == '{"actions": []}'
    assert session.closed


def test_openrouter_request_payload():
    session = FakeSession(make_response(body=chat_body("ok")))
    make_gateway(session, temperature=0, max_tokens=1200).complete("sys", "usr")

    call = session.calls[0]
    assert call["url"] == "https://openrouter.ai/api/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["json"] == {
        "model": "test-model",
        "temperature": 0,
        "max_tokens": 1200,
        "messages": [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "usr"},
        ],
    }
    assert 0 < call["timeout"] <= 2


def test_per_call_overrides_and_empty_system_prompt():
    session = FakeSession(make_response(body=chat_body("ok")))
    make_gateway(session).complete("", "usr", model_name="other", max_tokens=800, temperature=0.2)

    payload = session.calls[0]["json"]
    assert payload["model"] == "other"
    assert payload["max_tokens"] == 800
    assert payload["temperature"] == 0.2
    assert payload["messages"] == [{"role": "user", "content": "usr"}]


def test_legacy_text_field_is_accepted():
    session = FakeSession(make_response(body={"choices": [{"text": "legacy"}]}))
    assert make_gateway(session).complete("s", "u") == "legacy"


def test_non_success_status_keeps_body():
    session = FakeSession(make_response(status=500, text="upstream exploded"))
    with pytest.raises(ModelError) as exc:
        make_gateway(session).complete("s", "u")

    assert exc.value.status == 500
    assert exc.value.raw == "upstream exploded"
    assert exc.value.code == "MODEL_ERROR"


@pytest.mark.parametrize("body", [chat_body(""), chat_body("   "), {"choices": []}, {}])
def test_empty_reply(body):
    with pytest.raises(EmptyModelReplyError):
        make_gateway(FakeSession(make_response(body=body))).complete("s", "u")


def test_non_json_provider_response():
    session = FakeSession(make_response(text="<html>gateway</html>"))
    with pytest.raises(ModelCallFailedError):
        make_gateway(session).complete("s", "u")


def test_transport_timeout_maps_to_model_timeout():
    session = FakeSession(error=requests.Timeout("read timed out"))
    with pytest.raises(ModelTimeoutError) as exc:
        make_gateway(session).complete("s", "u")
    assert exc.value.http_status == 504


def test_connection_error_maps_to_call_failed():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(ModelCallFailedError) as exc:
        make_gateway(session).complete("s", "u")
    assert exc.value.code == "MODEL_CALL_FAILED"


def test_deadline_cancels_the_call():
    release = threading.Event()
    session = FakeSession(make_response(body=chat_body("too late")), block=release)
    gateway = make_gateway(session, timeout_ms=50)
    token = gateway.new_token()

    try:
        with pytest.raises(ModelTimeoutError):
            gateway.complete("s", "u", token=token)
        assert token.cancelled
    finally:
        release.set()


def test_cancelled_token_skips_the_call():
    session = FakeSession(make_response(body=chat_body("x")))
    token = CancellationToken(1000)
    token.cancel()

    with pytest.raises(ModelTimeoutError):
        make_gateway(session).complete("s", "u", token=token)
    assert session.calls == []


def test_token_remaining_never_negative():
    token = CancellationToken(0)
    assert token.remaining() == 0.0
    assert token.expired


def test_generic_provider_sends_single_prompt():
    session = FakeSession(make_response(text='{"actions": []}'))
    gateway = make_gateway(session, provider="generic", url="https://llm.local/complete")

    assert gateway.complete("sys", "usr") == '{"actions": []}'
    assert session.calls[0]["url"] == "https://llm.local/complete"
    assert session.calls[0]["json"] == {"prompt": "sys\n\nusr"}


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("OPENROUTER_API_KEY", "OPENROUTER_KEY", "AI_API_URL", "AI_API_KEY",
                 "OPENROUTER_MODEL", "OPENROUTER_MODEL_NAME"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_config_without_keys_is_unconfigured(clean_env):
    gateway = ModelGateway.from_config()
    assert gateway.is_configured is False
    assert gateway.timeout_ms == 25000


def test_from_config_prefers_openrouter(clean_env):
    clean_env.setenv("OPENROUTER_API_KEY", "sk-or")
    clean_env.setenv("AI_API_URL", "https://llm.local")
    clean_env.setenv("AI_API_KEY", "generic")
    clean_env.setenv("OPENROUTER_MODEL", "custom/model")

    gateway = ModelGateway.from_config()
    assert gateway.provider == "openrouter"
    assert gateway.api_key == "sk-or"
    assert gateway.model_name == "custom/model"
    assert gateway.is_configured


def test_from_config_generic_endpoint(clean_env):
    clean_env.setenv("AI_API_URL", "https://llm.local")
    clean_env.setenv("AI_API_KEY", "generic")

    gateway = ModelGateway.from_config()
    assert gateway.provider == "generic"
    assert gateway.url == "https://llm.local"
