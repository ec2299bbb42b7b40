"""
Pydantic models for the Legal Advisor FastAPI backend.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

from .advisor import ImageInput
from .contract_builder import ContractSession
from .legal_patterns import CONTRACT_TYPES


class HistoryMessage(BaseModel):
    """One prior turn of the conversation."""
    role: Literal["user", "assistant"]
    content: str


class ImagePayload(BaseModel):
    """Base64 image attached to a question."""
    data: str
    mime_type: str = Field(default="image/png", pattern=r"^image/[a-z0-9.+-]+$")

    def to_input(self) -> ImageInput:
        return ImageInput(data=self.data, mime_type=self.mime_type)


class AdviceRequest(BaseModel):
    """Request body for the streaming advice endpoint."""
    query: str = Field(..., min_length=1, max_length=4000)
    history: list[HistoryMessage] = []
    images: list[ImagePayload] = Field(default=[], max_length=4)


class ContractSessionPayload(BaseModel):
    """Snapshot of the contract session, owned by the caller."""
    html_content: str = ""
    version: int = Field(default=0, ge=0)
    contract_type: str = "custom"
    language: Literal["ar", "fr", "en"] = "fr"
    messages: list[HistoryMessage] = []

    def to_session(self) -> ContractSession:
        contract_type = self.contract_type if self.contract_type in CONTRACT_TYPES else "custom"
        return ContractSession(
            html_content=self.html_content,
            version=self.version,
            contract_type=contract_type,
            language=self.language,
            messages=[m.model_dump() for m in self.messages],
        )


class ContractStreamRequest(BaseModel):
    """Request body for the streaming contract endpoint."""
    message: str = Field(..., min_length=1, max_length=4000)
    session: ContractSessionPayload = ContractSessionPayload()


class TitleRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class TitleResponse(BaseModel):
    title: str


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    database: str
    embedding_cache_size: int
    completion_model: Optional[str] = None
