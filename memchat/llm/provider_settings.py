"""Provider-side augmentation settings passed through to the model"""

from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class ReasoningLevel(str, Enum):
    """Reasoning effort levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProviderSettings(BaseModel):
    """Web search and reasoning directives for one request"""
    search_max_results: Optional[int] = Field(None, ge=1)
    reasoning_effort: Optional[ReasoningLevel] = None

    def to_request_fields(self) -> Dict[str, Any]:
        """OpenRouter request body fields"""
        fields: Dict[str, Any] = {}
        if self.search_max_results:
            fields["plugins"] = [
                {"id": "web", "max_results": self.search_max_results},
            ]
        if self.reasoning_effort:
            fields["reasoning"] = {"effort": self.reasoning_effort.value}
        return fields
