from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ChefProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: str = "unspecified"
    allergies: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    diet: str = "any"
    location: Optional[str] = None
    skill_level: Optional[str] = Field(default=None, alias="skillLevel")
    pantry: List[str] = Field(default_factory=list)
    dislikes: List[str] = Field(default_factory=list)

    def has_restrictions(self) -> bool:
        return bool(self.allergies or self.conditions or self.dislikes)
