import pytest
from bs4.builder import ParserRejectedMarkup

from mutator.dom import validator
from mutator.dom.document import MarkupDocument
from mutator.dom.validator import validate_markup
from mutator.errors import AppliedHtmlParseError


def test_serialize_round_trips_simple_markup():
    source = '<!DOCTYPE html>\n<html><body><h1 id="t">Old</h1></body></html>'
    assert MarkupDocument(source).serialize() == source


def test_query_returns_matches_in_document_order():
    doc = MarkupDocument("<p>a</p><div><p>b</p></div><p>c</p>")
    assert [doc.get_text(n) for n in doc.query("p")] == ["a", "b", "c"]


def test_set_text_replaces_children():
    doc = MarkupDocument("<p>Hello <b>bold</b> world</p>")
    node = doc.query("p")[0]
    doc.set_text(node, "plain")
    assert doc.serialize() == "<p>plain</p>"


def test_add_class_handles_string_valued_class_attribute():
    doc = MarkupDocument("<p>x</p>")
    node = doc.query("p")[0]
    doc.set_attribute(node, "class", "a b")
    doc.add_class(node, "b c")
    assert doc.get_attribute(node, "class") == "a b c"


def test_append_fragment_adds_last_children():
    doc = MarkupDocument("<ul><li>1</li></ul>")
    doc.append_fragment(doc.query("ul")[0], "<li>2</li><li>3</li>")
    assert doc.serialize() == "<ul><li>1</li><li>2</li><li>3</li></ul>"


def test_remove_detaches_subtree():
    doc = MarkupDocument("<div><span>x</span>y</div>")
    doc.remove(doc.query("span")[0])
    assert doc.serialize() == "<div>y</div>"


def test_non_string_source_is_rejected():
    with pytest.raises(TypeError):
        MarkupDocument(None)


def test_validate_markup_accepts_serialized_document():
    doc = validate_markup("<section><p>ok</p></section>")
    assert doc.query("p")


def test_validate_markup_surfaces_parser_failure(monkeypatch):
    def reject(_source):
        raise ParserRejectedMarkup("unexpected end of data")

    monkeypatch.setattr(validator, "MarkupDocument", reject)

    with pytest.raises(AppliedHtmlParseError) as exc:
        validate_markup("<p>")
    assert exc.value.code == "APPLIED_HTML_PARSE_ERROR"
    assert "unexpected end of data" in exc.value.message


def test_serialize_keeps_doctype_comments_and_entities():
    source = "<!DOCTYPE html><!-- top --><p>a &amp; b</p>\n"
    assert MarkupDocument(source).serialize() == source
