# src/mutator/services/deterministic_rewrite_service.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from mutator.model import RewriteDescriptor

logger = logging.getLogger(__name__)

PHRASES_OPTIONS = {"phrases_array", "both"}
TEXT_OPTIONS = {"text_center", "both"}
REWRITE_OPTIONS = PHRASES_OPTIONS | TEXT_OPTIONS

DEFAULT_PHRASES = ["New phrase 1", "New phrase 2"]
DEFAULT_CENTER_TEXT = "Text changed"

# Source patterns
PHRASES_ASSIGNMENT = re.compile(r"const\s+phrases\s*=\s*\[[\s\S]*?\];", re.IGNORECASE)
TEXT_ASSIGNMENT = re.compile(r"const\s+text\s*=\s*([\"'`])([\s\S]*?)\1\s*;", re.IGNORECASE)

# Instruction literals
INSTRUCTION_LIST = re.compile(r"\[(.*?)\]", re.DOTALL)
INSTRUCTION_QUOTED = re.compile(r"['\"`](.*?)['\"`]")


@dataclass
class RewriteResult:
    code: str
    actions: List[RewriteDescriptor] = field(default_factory=list)


class DeterministicRewriteService:
    """
    Rewrites two known source constructs straight from user-supplied literals:
    the `const phrases = [...]` list and the `const text = "..."` scalar.
    Never calls the model.
    """

    @staticmethod
    def handles(option: Optional[str]) -> bool:
        return option in REWRITE_OPTIONS

    def rewrite(self, code: str, instructions: str, option: str) -> RewriteResult:
        if not self.handles(option):
            raise ValueError(f"Unsupported rewrite option: {option!r}")

        new_code = code
        actions: List[RewriteDescriptor] = []

        if option in PHRASES_OPTIONS:
            phrases = self.extract_phrases(instructions)
            new_code, matched = self.replace_phrases_array(new_code, phrases)
            actions.append(RewriteDescriptor(type="setPhrasesArray", phrases=phrases, matched=matched))

        if option in TEXT_OPTIONS:
            text = self.extract_center_text(instructions)
            new_code, matched = self.replace_text_center(new_code, text)
            actions.append(RewriteDescriptor(type="setTextCenter", text=text, matched=matched))

        for action in actions:
            if not action.matched:
                logger.info("Deterministic rewrite: no '%s' pattern in source, left unchanged.", action.type)

        return RewriteResult(code=new_code, actions=actions)

    # -------- Instruction extraction --------

    @staticmethod
    def extract_phrases(instructions: str) -> List[Any]:
        """
        Extracts the first bracketed list from the instruction and parses it as
        a JSON array. Falls back to a placeholder list.
        """
        phrases: Optional[List[Any]] = None
        match = INSTRUCTION_LIST.search(instructions)
        if match:
            try:
                phrases = json.loads(f"[{match.group(1)}]")
            except ValueError:
                phrases = None

        if phrases is None:
            phrases = list(DEFAULT_PHRASES)
        return phrases

    @staticmethod
    def extract_center_text(instructions: str) -> str:
        """Returns the first quoted substring of the instruction, or a placeholder."""
        match = INSTRUCTION_QUOTED.search(instructions)
        return match.group(1) if match else DEFAULT_CENTER_TEXT

    # -------- Source substitution --------

    @staticmethod
    def replace_phrases_array(source: str, phrases: List[Any]) -> Tuple[str, bool]:
        """Rewrites the first `const phrases = [...];` and reports whether one was found."""
        items = ",\n  ".join(json.dumps(p, ensure_ascii=False, separators=(",", ":")) for p in phrases)
        replacement = f"const phrases = [\n  {items}\n];"
        new_source, count = PHRASES_ASSIGNMENT.subn(lambda _m: replacement, source, count=1)
        return new_source, count > 0

    @staticmethod
    def replace_text_center(source: str, text: str) -> Tuple[str, bool]:
        """
        Substitutes the scalar literal, keeping the original quote character.
        Reports whether a `const text = "...";` assignment was found.
        """
        new_source, count = TEXT_ASSIGNMENT.subn(
            lambda m: f"const text = {m.group(1)}{text}{m.group(1)};",
            source,
            count=1,
        )
        return new_source, count > 0
