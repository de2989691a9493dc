"""Model capability heuristics based on identifier patterns"""

REASONING_PATTERNS = ("deepseek-r1", "o1", "o3")
SEARCH_PATTERNS = ("sonar", "online", "perplexity", "search")


def supports_reasoning(model_id: str) -> bool:
    """Whether to offer the reasoning toggle for this model"""
    model_id = model_id.lower()
    return any(pattern in model_id for pattern in REASONING_PATTERNS)


def supports_search(model_id: str) -> bool:
    """Whether to offer the web search toggle for this model"""
    model_id = model_id.lower()
    return any(pattern in model_id for pattern in SEARCH_PATTERNS)
