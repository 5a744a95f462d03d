# src/mutator/dom/document.py
import logging
from typing import Iterator, List, Union

from bs4 import BeautifulSoup, Doctype, Tag

logger = logging.getLogger(__name__)

# The same parser is used on ingestion and for post-validation
MARKUP_PARSER = "html.parser"


class MarkupDocument:
    """
    Selector-addressable markup tree owned by a single request.

    Wraps BeautifulSoup behind the small set of capabilities the action
    applier needs (query, text/attribute mutation, removal, fragment
    insertion), so the parsing library stays swappable.
    """

    def __init__(self, source: str):
        if not isinstance(source, str):
            raise TypeError(f"Markup source must be a string, got {type(source).__name__}")
        self.soup = BeautifulSoup(source, MARKUP_PARSER)

    # -------- Querying --------

    def query(self, selector: str) -> List[Tag]:
        """Resolves a CSS selector to the matching element nodes, in document order."""
        return self.soup.select(selector)

    def iter_elements(self) -> Iterator[Tag]:
        """Lazily walks every element node in document order."""
        for node in self.soup.descendants:
            if isinstance(node, Tag):
                yield node

    # -------- Reading --------

    @staticmethod
    def get_text(node: Tag) -> str:
        return node.get_text()

    @staticmethod
    def get_attribute(node: Tag, name: str) -> Union[str, None]:
        """Returns an attribute as a single string (multi-valued ones are space-joined)."""
        value = node.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    # -------- Mutation --------

    @staticmethod
    def set_text(node: Tag, text: str) -> None:
        """Replaces all children of the node with a single text node."""
        node.string = text

    @staticmethod
    def set_attribute(node: Tag, name: str, value: str) -> None:
        node[name] = value

    @staticmethod
    def add_class(node: Tag, class_name: str) -> None:
        """Adds each whitespace-separated class token that is not present yet."""
        current = node.get("class")
        if current is None:
            classes = []
        elif isinstance(current, str):
            classes = current.split()
        else:
            classes = list(current)

        for token in class_name.split():
            if token not in classes:
                classes.append(token)
        node["class"] = classes

    @staticmethod
    def remove(node: Tag) -> None:
        """Detaches the node (and its subtree) from the tree."""
        node.extract()

    @staticmethod
    def append_fragment(node: Tag, html: str) -> None:
        """Parses a markup fragment and appends it as the last child(ren) of the node."""
        fragment = BeautifulSoup(html, MARKUP_PARSER)
        for child in list(fragment.contents):
            node.append(child.extract())

    # -------- Output --------

    def serialize(self) -> str:
        """
        Renders the tree back to markup. The doctype is written without the
        newline bs4 appends to it, so an untouched document round-trips.
        """
        parts = []
        for node in self.soup.contents:
            if isinstance(node, Doctype):
                parts.append(f"<!DOCTYPE {node}>")
            elif isinstance(node, Tag):
                parts.append(node.decode())
            else:
                parts.append(node.output_ready(formatter="minimal"))
        return "".join(parts)
