from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FurnitureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hotspot: str = Field(..., description="Hotspot key within the room")
    option_key: str = Field(..., description="Installed furniture option")


class RoomRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    room_type: str = Field(..., description="Room catalog key")
    grid_x: int = Field(..., ge=0, description="Grid column")
    grid_y: int = Field(..., ge=0, description="Grid row")
    furniture: list[FurnitureRead] = Field(default_factory=list)


class HouseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    owner_id: int = Field(..., description="Owning player")
    tier: str = Field(..., description="cottage/house/manor")
    condition: int = Field(..., ge=0, le=100, description="0 means abandoned")
    upkeep_due_at: datetime | None = Field(None, description="When upkeep next falls due")
    modifiers: dict[str, float] = Field(default_factory=dict, description="Cached modifiers")
    storage: dict[str, int] = Field(default_factory=dict, description="Stored item quantities")
    rooms: list[RoomRead] = Field(default_factory=list)
