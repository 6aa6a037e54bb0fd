"""
JSON-отчёты CLI.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReportError(BaseModel):
    message: str
    line: Optional[int] = None
    column: Optional[int] = None


class RenderReport(BaseModel):
    """Результат команды render --json."""

    model_config = ConfigDict(populate_by_name=True)

    output: str
    errors: List[ReportError] = Field(default_factory=list)
    has_deferred_variables: bool = Field(default=False, alias="hasDeferredVariables")


class CheckReport(BaseModel):
    """Результат команды check --json."""

    ok: bool
    errors: List[ReportError] = Field(default_factory=list)
    warnings: List[ReportError] = Field(default_factory=list)


__all__ = ["ReportError", "RenderReport", "CheckReport"]
