from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    is_free: bool = Field(alias="isFree")
    requires_relay: bool = Field(alias="requiresRelay")
    free_models: List[str] = Field(default_factory=list, alias="freeModels")
    documentation: str = ""
    dashboard_url: str = Field(default="", alias="dashboardUrl")
    default_model: str = Field(alias="defaultModel")


class ModelOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    context_window: int = Field(alias="contextWindow")
    max_output_tokens: int = Field(alias="maxOutputTokens")
    is_free: bool = Field(alias="isFree")


class KeyValidationOut(BaseModel):
    valid: bool
    error: Optional[str] = None


class ApiKeyIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(min_length=1, alias="apiKey")
