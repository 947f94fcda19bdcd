from pydantic import BaseModel, ConfigDict, Field


class ReligionMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int = Field(..., description="Member player")
    rank: str = Field(..., description="Religious rank")
    devotion: int = Field(default=0, ge=0, description="Devotion earned")


class ReligionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    name: str = Field(..., description="Unique name")
    type: str = Field(..., description="cult or religion")
    founder_id: int | None = Field(None, description="Founding prophet")
    is_public: bool = Field(default=False, description="Whether anyone may join")
    modifiers: dict[str, float] = Field(default_factory=dict, description="Belief modifiers")
    members: list[ReligionMemberRead] = Field(default_factory=list)
