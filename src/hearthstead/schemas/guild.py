from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class GuildMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int = Field(..., description="Member player")
    rank: str = Field(..., description="apprentice/journeyman/master/guildmaster")
    contribution: int = Field(default=0, ge=0, description="Gold contributed")
    dues_paid_until: datetime | None = Field(None, description="End of the paid dues period")


class GuildRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Primary key")
    name: str = Field(..., description="Unique guild name")
    skill: str = Field(..., description="Skill the guild is organised around")
    location_type: str = Field(..., description="town or barony")
    location_id: int = Field(..., description="Settlement identifier")
    guildmaster_id: int | None = Field(None, description="Current guildmaster")
    treasury: int = Field(..., ge=0, description="Gold held by the guild")
    level: int = Field(..., ge=1, description="Level derived from total contribution")
    total_contribution: int = Field(..., ge=0)
    membership_fee: int = Field(..., ge=0)
    weekly_dues: int = Field(..., ge=0)
    max_members: int = Field(..., ge=1)
    is_public: bool = Field(default=True)
    modifiers: dict[str, float] = Field(default_factory=dict, description="Unlocked benefits")
    members: list[GuildMemberRead] = Field(default_factory=list)
