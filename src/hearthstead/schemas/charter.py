from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CharterRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    name: str = Field(..., description="Name of the settlement to found")
    charter_type: str = Field(..., description="village/town/castle")
    founder_id: int = Field(..., description="Petitioning player")
    kingdom_id: int = Field(..., description="Kingdom whose king decides")
    status: str = Field(..., description="Lifecycle status")
    gold_paid: int = Field(..., ge=0, description="Escrowed gold")
    signatories_required: int = Field(..., ge=0)
    signing_ends_at: datetime | None = Field(None, description="Signature deadline")
    expires_at: datetime | None = Field(None, description="Founding deadline once approved")
    founded_at: datetime | None = Field(None)
    vulnerability_ends_at: datetime | None = Field(None)
    refunded: int = Field(default=0, ge=0, description="Gold returned to the founder")
