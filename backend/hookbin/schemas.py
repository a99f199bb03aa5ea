from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Union

# A header or query parameter seen once is a string, seen repeatedly a list
MultiValue = Union[str, List[str]]


class WireModel(BaseModel):
    """Base for models exchanged in camelCase on the wire and in the log."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    def to_wire(self) -> Dict[str, Any]:
        # Optional fields never assigned stay absent rather than null
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class NameValue(WireModel):
    name: str
    value: str


class FormFile(WireModel):
    name: str
    filename: str
    mime_type: str


# Unified capture record, one per inbound request
class EventRecord(WireModel):
    id: str
    namespace: str
    timestamp: str
    method: str
    path: str
    full_url: str
    query: Dict[str, MultiValue] = {}
    query_strings: List[NameValue] = []
    headers: Dict[str, MultiValue] = {}
    body_raw: str = ""
    body_json: Optional[Any] = None
    form_values: Optional[List[NameValue]] = None
    form_files: Optional[List[FormFile]] = None
    remote_address: str = ""
    host: str = ""
    user_agent: str = ""
    content_length: str = ""
    size_bytes: int = 0
    duration_ms: float = 0.0


# API Response Models
class CaptureResponse(BaseModel):
    ok: bool = True
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class NamespacesResponse(BaseModel):
    namespaces: List[str]


class ErrorResponse(BaseModel):
    error: str
