from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from recipe_gateway.schemas.profile import ChefProfile

Locale = Literal["es", "en"]
MealType = Literal["breakfast", "lunch", "dinner", "snack", "dessert"]
ProteinType = Literal["chicken", "beef", "pork", "fish", "seafood", "egg", "tofu", "legumes", "none"]


class Ingredient(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    amount: str = ""
    is_allergen: bool = Field(default=False, alias="isAllergen")


class Nutrients(BaseModel):
    calories: int = 0
    protein: int = 0
    carbs: int = 0
    fat: int = 0


class ParsedRecipe(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    prep_time_minutes: int = Field(alias="prepTimeMinutes")
    cook_time_minutes: int = Field(alias="cookTimeMinutes")
    servings: int
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    tips: Optional[str] = None
    allergen_notice: Optional[str] = Field(default=None, alias="allergenNotice")
    nutrients: Optional[Nutrients] = None
    provider: Optional[str] = None
    generated_at: datetime = Field(alias="generatedAt")
    prompt_id: Optional[str] = Field(default=None, alias="promptId")


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class RecipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, max_length=4000)
    provider: Optional[str] = None
    model: Optional[str] = None
    locale: Optional[Locale] = None
    stream: bool = Field(default=False)
    profile: Optional[ChefProfile] = None
    history: List[HistoryTurn] = Field(default_factory=list)
    max_tokens: Optional[int] = Field(default=None, gt=0, alias="maxTokens")
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    prompt_id: Optional[str] = Field(default=None, alias="promptId")


class RecipeResponse(BaseModel):
    content: str
    provider: str
    model: str
    recipe: Optional[ParsedRecipe] = None


class ParseRequest(BaseModel):
    markdown: str
    provider: Optional[str] = None
    locale: Optional[Locale] = None


class IdeasRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ingredients: str = Field(min_length=1, max_length=4000)
    provider: Optional[str] = None
    model: Optional[str] = None
    locale: Optional[Locale] = None
    meal_type: Optional[MealType] = Field(default=None, alias="mealType")
    vibes: List[str] = Field(default_factory=list)
    servings: int = Field(default=2, ge=1, le=50)
    profile: Optional[ChefProfile] = None


class RecipeIdea(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str
    meal_type: MealType = Field(alias="mealType")
    protein_type: ProteinType = Field(alias="proteinType")
    ingredients: List[str] = Field(default_factory=list)
    vibes: List[str] = Field(default_factory=list)
    servings: int
    created_at: datetime = Field(alias="createdAt")
    is_used: bool = Field(default=False, alias="isUsed")
