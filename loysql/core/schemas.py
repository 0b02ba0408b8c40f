from typing import Any, Dict, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =========================
# Enums
# =========================
class ResultShape(str, Enum):
    LIST = "list"
    SINGLE = "single"
    VOID = "void"


# =========================
# ENVELOPE (wire format)
# =========================
class Envelope(BaseModel):
    """
    The JSON document handed to the central routine.

    Field order matters to routines that pattern-match the text:
    queryName always comes first, params second.
    """

    query_name: Optional[str] = Field(alias="queryName")
    params: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


# =========================
# REQUEST
# =========================
class QueryRequest(BaseModel):
    query_name: Optional[str]
    params: Dict[Any, Any] = Field(default_factory=dict)
    catalog: Optional[str] = None

    model_config = ConfigDict(frozen=True)
