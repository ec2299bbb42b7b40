"""
Stream Events

Every pipeline yields a sequence of these models. Each one serializes to a
single Server-Sent Event frame: `data: <json>\\n\\n`, with the event kind in
the JSON `type` field.
"""

import json
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class StreamEvent(BaseModel):
    """Base class for pipeline events."""
    type: str

    def to_sse(self) -> str:
        """Format as one SSE frame."""
        return f"data: {json.dumps(self.model_dump(by_alias=True), ensure_ascii=False)}\n\n"


class Step(StreamEvent):
    """Progress message shown while the pipeline works."""
    type: Literal["step"] = "step"
    message: str


class IntentDetected(StreamEvent):
    type: Literal["intent"] = "intent"
    intent: dict


class Citation(StreamEvent):
    """Sources the answer will be grounded on (sent before the first token)."""
    type: Literal["citation"] = "citation"
    sources: list[dict] = Field(default_factory=list)


class Token(StreamEvent):
    type: Literal["token"] = "token"
    text: str


class Sources(StreamEvent):
    """Legal references found for a contract draft."""
    type: Literal["sources"] = "sources"
    docs: list[dict] = Field(default_factory=list)


class HtmlUpdate(StreamEvent):
    type: Literal["html_update"] = "html_update"
    html: str
    version: int


class ReviewIssue(BaseModel):
    """One compliance finding from the contract audit."""
    model_config = ConfigDict(populate_by_name=True)

    clause: str = ""
    severity: Literal["critical", "warning", "info"] = "info"
    description: str = ""
    law_reference: str = Field(default="", alias="lawReference")


class ReviewResult(StreamEvent):
    type: Literal["review"] = "review"
    issues: list[ReviewIssue] = Field(default_factory=list)
    summary: str = ""


class Error(StreamEvent):
    type: Literal["error"] = "error"
    message: str


class Done(StreamEvent):
    type: Literal["done"] = "done"


AnyEvent = Union[Step, IntentDetected, Citation, Token, Sources, HtmlUpdate, ReviewResult, Error, Done]


def error_frame(message: Optional[str] = None) -> str:
    """A terminal error frame for the transport to send when a pipeline dies."""
    return Error(message=message or "An unexpected error occurred.").to_sse()
