from pydantic import BaseModel, ConfigDict, Field


class PlayerCreate(BaseModel):
    username: str = Field(..., min_length=1, description="Unique username")
    gold: int = Field(default=0, ge=0, description="Starting gold")
    skills: dict[str, int] = Field(default_factory=dict, description="Skill name -> level")
    inventory: dict[str, int] = Field(default_factory=dict, description="Item name -> quantity")
    title_tier: int = Field(default=1, ge=1, description="Rank of the highest title held")
    social_class: str = Field(default="freeman", description="serf/freeman/burgher/clergy/noble")
    location_type: str = Field(default="village", description="village/town/barony")
    location_id: int = Field(default=1, description="Settlement the player lives in")
    kingdom_id: int | None = Field(None, description="Kingdom of residence")


class PlayerRead(PlayerCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    experience: dict[str, int] = Field(default_factory=dict, description="Skill name -> XP")
    bound_to_barony_id: int | None = Field(None, description="Barony a serf is bound to")
    labor_days_owed: int = Field(default=0, ge=0, description="Outstanding serf labor")
    ruled_kingdom_id: int | None = Field(None, description="Kingdom ruled as king")
    ruled_barony_id: int | None = Field(None, description="Barony ruled as baron")
