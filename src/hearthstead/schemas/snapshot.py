from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SnapshotRead(BaseModel):
    """Subject state immediately after a committed transition."""

    model_config = ConfigDict(from_attributes=True)

    kind: str = Field(..., description="Subject kind")
    subject_id: int = Field(..., description="Subject primary key")
    gold: int = Field(..., description="Balance that paid for the action")
    active_entries: list[str] = Field(default_factory=list)
    modifiers: dict[str, float] = Field(default_factory=dict)
    detail: dict[str, Any] = Field(default_factory=dict)


class EligibilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    can_proceed: bool
    reason: str | None = None
    cost: int | None = None
    message: str | None = None


class ModifierSourceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source: str
    effect_key: str
    value: float
