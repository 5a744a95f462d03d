import json

import pytest

from mutator import app as cli
from mutator.core.managers.config_manager import config_manager
from mutator.errors import AppliedHtmlParseError


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # Keep pytest's own log capture in place
    monkeypatch.setattr(cli, "configure_logger", lambda *a, **k: None)
    yield
    config_manager.reset()


def test_apply_prints_outcomes_and_leaves_file(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text("<h1>Old</h1>", encoding="utf-8")
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps({"actions": [{"type": "replaceText", "selector": "h1", "value": "New"}]}))

    exit_code = cli.main(["apply", str(actions), str(page)])

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert output[str(page)] == [{"action": "replaceText", "selector": "h1", "applied": True, "count": 1}]
    assert page.read_text(encoding="utf-8") == "<h1>Old</h1>"


def test_apply_in_place_with_bare_list(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text("<p>x</p>", encoding="utf-8")
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps([{"type": "addClass", "selector": "p", "className": "lead"}]))

    assert cli.main(["apply", str(actions), str(page), "--in-place"]) == 0
    assert page.read_text(encoding="utf-8") == '<p class="lead">x</p>'


def test_apply_rejects_invalid_actions_file(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text("<p>x</p>", encoding="utf-8")
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps({"nothing": True}))

    assert cli.main(["apply", str(actions), str(page)]) == 1
    assert "INVALID_INPUT" in capsys.readouterr().out


def test_summarize_prints_outline(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text('<h1>Title</h1><div>plain</div><div id="hero">Hero</div>', encoding="utf-8")

    assert cli.main(["summarize", str(page)]) == 0
    outline = json.loads(capsys.readouterr().out)
    assert [n["tag"] for n in outline] == ["h1", "div"]
    assert outline[1]["id"] == "hero"


def test_summarize_missing_file(tmp_path, capsys):
    assert cli.main(["summarize", str(tmp_path / "missing.html")]) == 1


def test_no_subcommand_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_set_overrides_show_in_config(capsys):
    assert cli.main(["--set", "server.diagnostics=true", "--set", "model.timeout_ms=900", "config"]) == 0

    config = json.loads(capsys.readouterr().out)
    assert config["server"]["diagnostics"] is True
    assert config["model"]["timeout_ms"] == 900


def test_set_override_feeds_summarize(tmp_path, capsys):
    page = tmp_path / "page.html"
    page.write_text("<p>1</p><p>2</p><p>3</p>", encoding="utf-8")

    assert cli.main(["--set", "summarizer.max_nodes=2", "summarize", str(page)]) == 0
    assert len(json.loads(capsys.readouterr().out)) == 2


def test_malformed_override_fails(capsys):
    assert cli.main(["--set", "nonsense", "config"]) == 1
    assert "Invalid --set override" in capsys.readouterr().out


def test_apply_continues_after_validation_failure(tmp_path, capsys, monkeypatch):
    first, broken, last = (tmp_path / f"{name}.html" for name in ("first", "broken", "last"))
    for page in (first, broken, last):
        page.write_text(f"<p>{page.stem}</p>", encoding="utf-8")
    actions = tmp_path / "actions.json"
    actions.write_text(json.dumps([{"type": "addClass", "selector": "p", "className": "lead"}]))

    real_validate = cli.validate_markup

    def validate(source):
        if "broken" in source:
            raise AppliedHtmlParseError("bad markup")
        return real_validate(source)

    monkeypatch.setattr(cli, "validate_markup", validate)

    exit_code = cli.main(["apply", str(actions), str(first), str(broken), str(last), "--in-place"])

    assert exit_code == 1
    output = json.loads(capsys.readouterr().out)
    assert output[str(broken)]["error"]["code"] == "APPLIED_HTML_PARSE_ERROR"
    assert output[str(first)][0]["applied"] is True
    assert output[str(last)][0]["applied"] is True
    assert broken.read_text(encoding="utf-8") == "<p>broken</p>"
    assert last.read_text(encoding="utf-8") == '<p class="lead">last</p>'
