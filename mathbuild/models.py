"""
Pydantic models for structured build inputs and tool results.
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Inputs
# =============================================================================

class PackageMetadata(BaseModel):
    """The part of package.json the build cares about."""

    model_config = ConfigDict(extra="allow")

    version: str = Field(..., min_length=1)


# =============================================================================
# Tool results
# =============================================================================

class BundleStats(BaseModel):
    """Result of one packaging engine run."""

    hard_failure: Optional[str] = None
    warnings: List[str] = []
    errors: List[str] = []
    assets: List[str] = []

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


class AsciiFinding(BaseModel):
    filename: str
    ln: int
    col: int
    c: int
    inside_comment: bool = False

    @property
    def character(self) -> str:
        return chr(self.c)
