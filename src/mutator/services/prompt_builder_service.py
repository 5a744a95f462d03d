# src/mutator/services/prompt_builder_service.py
from __future__ import annotations

import json
from typing import Any, Iterable, Tuple

from mutator.model import ACTION_TYPES, StructureNode

EDIT_SYSTEM_PROMPT = """\
You are an expert engineer in structural HTML editing.

Your task:
1. Analyse the user's intent.
2. Identify which part of the HTML must change.
3. Change ONLY what is necessary.
4. Keep structure, scripts and styles intact unless explicitly asked.
5. Do not remove existing code unless explicitly requested.

Strict rules:
- Do not add explanations.
- Do not use markdown.
- Do not invent unnecessary content.
- If you are unsure, change as little as possible.

You are a structured HTML editing engine.
NEVER return the full HTML.
You may ONLY answer with valid JSON in the specified format.
If you cannot fulfil an instruction, return: {"actions": []}
Never explain anything.
Never add text outside the JSON."""

ACTION_SCHEMA_DIRECTIVE = (
    "REPLY ONLY WITH A SINGLE VALID JSON OBJECT WITH THE FOLLOWING STRUCTURE:\n"
    '{ "actions": [ { "type": "' + "|".join(ACTION_TYPES) + '", "selector": "...", ... } ] }\n'
    "Fields per type: replaceText(value, search?), setAttribute(attribute, value), "
    "addClass(className), removeElement(), appendHTML(html).\n"
    'If the instruction cannot be fulfilled safely, reply {"actions": []}.'
)

SUGGEST_PROMPT_HEADER = (
    "You are an assistant that only returns JSON with keys: reasoning, confidence, actions.\n"
    "You will receive a user prompt and a website structure object (JSON).\n"
    "Rules: never modify audio, never output text/markdown, only return valid JSON.\n"
    "Max {max_actions} actions. Each action: selector,type,action,value. Types: text,image,style,attribute,class.\n"
    "Actions that touch audio or scripts must be removed. If ambiguous, prefer no-op.\n"
    "Respond ONLY with the JSON object, no explanation.\n\n"
)


class PromptBuilderService:
    """Assembles the prompts for both model paths. Pure and deterministic."""

    def __init__(self, suggest_max_actions: int = 10):
        self.suggest_max_actions = suggest_max_actions

    @staticmethod
    def format_structure(nodes: Iterable[StructureNode]) -> str:
        return json.dumps(
            [node.model_dump(by_alias=True) for node in nodes],
            indent=2,
            ensure_ascii=False,
        )

    def build_edit_prompts(
            self, structure: Iterable[StructureNode], code: str, instructions: str
    ) -> Tuple[str, str]:
        """Returns the (system, user) prompt pair of the in-place edit path."""
        user_prompt = (
            f"Document structure:\n{self.format_structure(structure)}\n\n"
            f"Full HTML file:\n{code}\n\n"
            f"User instruction:\n{instructions}\n\n"
            f"{ACTION_SCHEMA_DIRECTIVE}"
        )
        return EDIT_SYSTEM_PROMPT, user_prompt

    def build_suggest_prompt(self, prompt: str, structure: Any) -> str:
        """Returns the single user message of the suggest-and-report path."""
        serialized = structure if isinstance(structure, str) else json.dumps(structure, ensure_ascii=False)
        return (
            SUGGEST_PROMPT_HEADER.format(max_actions=self.suggest_max_actions)
            + f"USER PROMPT:\n{prompt}\n\nSTRUCTURE:\n{serialized}\n\n"
            + "Return the JSON now."
        )
