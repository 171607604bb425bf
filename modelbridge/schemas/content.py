from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FileContext(BaseModel):
    """Immutable snapshot of a file handed to every generate call."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    last_modified: Optional[datetime] = None
    size: Optional[int] = Field(default=None, ge=0)


# host content shape (camelCase on the wire: fileData, fileUri, mimeType, ...)
# keys the core does not act on (tools, generationConfig, inlineData) are ignored on parse
class _HostModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileData(_HostModel):
    mime_type: Optional[str] = None
    file_uri: str


class Part(_HostModel):
    text: Optional[str] = None
    file_data: Optional[FileData] = None


class Content(_HostModel):
    role: Optional[Literal["user", "model"]] = None
    parts: List[Part] = Field(default_factory=list)


class GenerateContentRequest(_HostModel):
    model: str
    contents: List[Content] = Field(default_factory=list)
    system_instruction: Optional[str] = None


class GenerateContentResponse(_HostModel):
    content: List[Content]

    @classmethod
    def from_text(cls, text: str) -> "GenerateContentResponse":
        return cls(content=[Content(role="model", parts=[Part(text=text)])])

    @property
    def text(self) -> str:
        return "".join(p.text or "" for c in self.content for p in c.parts)
