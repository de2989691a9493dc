"""Pricing tier classification for usage accounting"""

from enum import Enum
from typing import Optional

from memchat.catalog.model_catalog import ModelCatalog

FREE_TIER_PATTERNS = ("free", "liquid", "arcee")
FREE_TIER_MODELS = ("google/gemma-7b-it:free",)


class Tier(str, Enum):
    """Usage accounting buckets"""
    NORMAL = "normal"
    PREMIUM = "premium"


def classify_by_identifier(model_id: str) -> Tier:
    """Premium unless the identifier matches a known free-tier pattern"""
    if model_id in FREE_TIER_MODELS:
        return Tier.NORMAL
    if any(pattern in model_id for pattern in FREE_TIER_PATTERNS):
        return Tier.NORMAL
    return Tier.PREMIUM


class TierClassifier:
    """
    Canonical tier classification

    Catalog pricing decides when the model is in the cached catalog, so
    usage accounting agrees with what the model picker shows. Identifier
    patterns cover models the catalog does not know (or a catalog that has
    not been loaded yet).
    """

    def __init__(self, catalog: Optional[ModelCatalog] = None):
        self.catalog = catalog

    def classify(self, model_id: str) -> Tier:
        if self.catalog is not None:
            model = self.catalog.cached_model(model_id)
            if model is not None:
                return Tier.PREMIUM if model.is_premium else Tier.NORMAL
        return classify_by_identifier(model_id)
