# src/mutator/model.py
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ACTION_TYPES = ("replaceText", "setAttribute", "addClass", "removeElement", "appendHTML")

OutcomeReason = Literal[
    "not_found",
    "missing_value",
    "missing_attribute",
    "missing_className",
    "forbidden_target",
    "exception",
    "unknown_type",
    "invalid_selector",
]

RewriteOption = Literal["phrases_array", "text_center", "both"]


class StructureNode(BaseModel):
    """
    One entry of the bounded document outline handed to the model as context.
    Never written back to the document.
    """
    model_config = ConfigDict(populate_by_name=True)

    tag: str
    text: str = ""
    id: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="class")


# --- Action variants (discriminated by 'type') ---

class ActionBase(BaseModel):
    """
    Fields shared by every structural edit. Fields a variant needs to do its
    job are still optional here: their absence is reported as an outcome
    reason by the applier instead of failing validation.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    selector: str = Field(min_length=1)


class ReplaceTextAction(ActionBase):
    type: Literal["replaceText"] = "replaceText"
    value: Any = None
    search: Any = None


class SetAttributeAction(ActionBase):
    type: Literal["setAttribute"] = "setAttribute"
    attribute: Optional[str] = None
    value: Any = None


class AddClassAction(ActionBase):
    type: Literal["addClass"] = "addClass"
    class_name: Optional[str] = Field(default=None, alias="className")


class RemoveElementAction(ActionBase):
    type: Literal["removeElement"] = "removeElement"


class AppendHtmlAction(ActionBase):
    type: Literal["appendHTML"] = "appendHTML"
    html: Optional[str] = None


Action = Annotated[
    Union[ReplaceTextAction, SetAttributeAction, AddClassAction, RemoveElementAction, AppendHtmlAction],
    Field(discriminator="type"),
]

ACTION_ADAPTER = TypeAdapter(Action)


class ActionOutcome(BaseModel):
    """Audit record of a single action, returned alongside the mutated document."""
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    selector: Optional[str] = None
    applied: bool = False
    count: Optional[int] = None
    reason: Optional[OutcomeReason] = None
    detail: Optional[str] = None
    attribute: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="className")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RewriteDescriptor(BaseModel):
    """Describes one substitution made by the deterministic rewriter."""
    type: Literal["setPhrasesArray", "setTextCenter"]
    phrases: Optional[List[Any]] = None
    text: Optional[str] = None
    matched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# --- Request / response bodies ---

class EditRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1)
    instructions: str = Field(min_length=1)
    selected_option: Optional[RewriteOption] = Field(default=None, alias="selectedOption")
    file_path: Optional[str] = Field(default=None, alias="filePath")
    persist: bool = False


class PersistResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    persisted: bool = True
    file_path: str = Field(alias="filePath")
    backup_path: Optional[str] = Field(default=None, alias="backupPath")


class SuggestRequest(BaseModel):
    prompt: str = Field(min_length=1)
    structure: Union[Dict[str, Any], List[Any]]


class SuggestResult(BaseModel):
    reasoning: str = ""
    confidence: float = 0
    actions: List[Dict[str, Any]] = Field(default_factory=list)


class ApplyReportRequest(BaseModel):
    executed: List[Any] = Field(default_factory=list)
    reasoning: Any = ""
    confidence: Any = None
    meta: Any = None
