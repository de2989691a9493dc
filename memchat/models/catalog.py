"""Model catalog entries"""

from typing import Optional
from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """Per-token pricing as reported by the provider (decimal strings)"""
    prompt: Optional[str] = "0"
    completion: Optional[str] = "0"
    image: Optional[str] = None
    request: Optional[str] = None


class CatalogModel(BaseModel):
    """Chat model offered to accounts"""
    id: str
    name: str
    context_length: Optional[int] = None
    pricing: ModelPricing = Field(default_factory=ModelPricing)
    is_premium: bool = False
    supports_reasoning: bool = False
    supports_search: bool = False
