# src/mutator/dom/summarizer.py
from typing import Iterable, Iterator, Optional

from .document import MarkupDocument
from ..model import StructureNode

DEFAULT_MAX_NODES = 100
DEFAULT_TAGS = ("h1", "h2", "h3", "p", "button", "a", "section", "div")
# Generic blocks are only worth reporting when they can be addressed by id or class
DEFAULT_GENERIC_TAGS = ("div",)


def summarize_structure(
        document: MarkupDocument,
        max_nodes: int = DEFAULT_MAX_NODES,
        tags: Iterable[str] = DEFAULT_TAGS,
        generic_tags: Iterable[str] = DEFAULT_GENERIC_TAGS,
) -> Iterator[StructureNode]:
    """
    Yields a bounded semantic outline of the document for use as model context.

    Elements are visited in document order and restricted to the tag
    allow-list; the sequence stops after `max_nodes` entries.
    """
    allowed = {t.lower() for t in tags}
    generic = {t.lower() for t in generic_tags}
    emitted = 0

    for element in document.iter_elements():
        if emitted >= max_nodes:
            return

        tag = (element.name or "").lower()
        if tag not in allowed:
            continue

        element_id = document.get_attribute(element, "id") or None
        class_name = document.get_attribute(element, "class") or None
        if tag in generic and not element_id and not class_name:
            continue

        emitted += 1
        yield StructureNode(
            tag=tag,
            text=element.get_text().strip(),
            id=element_id,
            class_name=class_name,
        )


def summarize_source(source: str, max_nodes: Optional[int] = None) -> list:
    """Convenience wrapper returning the outline of raw markup as plain dicts."""
    document = MarkupDocument(source)
    nodes = summarize_structure(document, max_nodes=max_nodes or DEFAULT_MAX_NODES)
    return [node.model_dump(by_alias=True) for node in nodes]
