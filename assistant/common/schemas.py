"""
Context Service Schemas

Request/response models for the JSON contract between the route layer
and the context pipeline.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttachmentRef(BaseModel):
    """Reference to a Box file or folder attached to a query"""
    type: Literal["file", "folder", "box_file", "box_folder"] = "box_file"
    id: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return "" if value is None else str(value).strip()

    @property
    def kind(self) -> str:
        """Normalized kind: "file" or "folder"."""
        return "folder" if self.type in ("folder", "box_folder") else "file"


class ContextRequest(BaseModel):
    """Inbound request: query, attachments and calling surface"""
    query: str = ""
    attachments: List[AttachmentRef] = Field(default_factory=list)
    client: str = "assistant"  # "widget" or "assistant"


class ResolvedFileModel(BaseModel):
    id: str
    name: str
    size: Optional[int] = None
    kind: Literal["file"] = "file"


class ResolveResponse(BaseModel):
    files: List[ResolvedFileModel] = Field(default_factory=list)


class ContextResponse(BaseModel):
    """Outbound knowledge base for the prompt-construction collaborator"""
    model_config = ConfigDict(populate_by_name=True)

    combined_text: str = Field("", serialization_alias="combinedText")
    citations: List[str] = Field(default_factory=list)
    partial: bool = False
