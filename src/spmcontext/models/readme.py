from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class UsageExample(BaseModel):
    """One titled code example lifted from a README."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str | None = None
    code: str
    language: str  # Normalised fence tag: "swift", "bash", "text", ...


class InstallationInfo(BaseModel):
    """Installation snippets found in a README, at most one per tool.

    Sparse: a tool with no snippet is ``None`` and is dropped when the model
    is dumped with ``exclude_none=True``.
    """

    spm: str | None = None
    carthage: str | None = None
    cocoapods: str | None = None
