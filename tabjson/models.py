from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class DocumentSummary(BaseModel):
    rows: int
    columns: List[str] = Field(default_factory=list)


class ConversionReport(BaseModel):
    source: str
    sha256: Optional[str] = Field(default=None, examples=[None])
    encoding: Optional[Dict[str, Any]] = Field(default=None, examples=[None])
    documents: List[DocumentSummary] = Field(default_factory=list)


class ConvertResponse(BaseModel):
    documents: List[List[Dict[str, Any]]]
    report: ConversionReport


class HealthResponse(BaseModel):
    ok: bool = True
