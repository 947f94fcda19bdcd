from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NpcRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    name: str = Field(..., description="NPC name")
    weekly_wage: int = Field(..., ge=0, description="Wage paid each week")


class BusinessRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    owner_id: int = Field(..., description="Owning player")
    type_key: str = Field(..., description="Business type catalog key")
    name: str = Field(..., description="Display name")
    location_type: str = Field(..., description="Settlement kind")
    location_id: int = Field(..., description="Settlement identifier")
    treasury: int = Field(..., ge=0, description="Gold held by the business")
    status: str = Field(..., description="active/suspended/closed")
    last_upkeep_at: datetime | None = Field(None, description="Last weekly settlement")
    employees: list[NpcRead] = Field(default_factory=list)
