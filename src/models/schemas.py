from typing import List, Optional

from pydantic import BaseModel, Field

from models.domain import GenerationResponse, LLMProvider


class GeneratedTagSchema(BaseModel):
    name: str
    score: int = Field(default=0, ge=0, le=100)

    model_config = {"from_attributes": True}


class MarketingCopySchema(BaseModel):
    logline: str
    catchphrases: List[str] = Field(default_factory=list)
    dialogue_snippet: str = ""

    model_config = {"from_attributes": True}


class GenerationResultSchema(BaseModel):
    description: str
    tags: List[GeneratedTagSchema]
    marketing_copy: Optional[MarketingCopySchema] = None

    model_config = {"from_attributes": True}


class GenerationResponseSchema(BaseModel):
    result: GenerationResultSchema
    used_failover: bool
    provider: LLMProvider

    @classmethod
    def from_response(cls, response: GenerationResponse) -> "GenerationResponseSchema":
        return cls(
            result=GenerationResultSchema.model_validate(response.result),
            used_failover=response.used_failover,
            provider=response.provider,
        )


class TagExplanationResponse(BaseModel):
    tag_name: str
    explanation: str


class ProviderTestRequest(BaseModel):
    provider: LLMProvider
    api_key: Optional[str] = Field(default=None, description="API key; optional for self-hosted providers")
    base_url: Optional[str] = Field(default=None, description="Endpoint base URL, e.g. http://localhost:11434/v1")
    model_name: Optional[str] = None


class ProviderTestResponse(BaseModel):
    ok: bool
    message: str
