"""
Model Catalog - live model list from the provider

Fetches the provider's model catalog, keeps text models from an allow-list
of providers, and classifies each as premium when either its prompt or its
completion token price is above zero. Free models sort first, then by name.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from memchat.catalog.capabilities import supports_reasoning, supports_search
from memchat.models.catalog import CatalogModel, ModelPricing

logger = logging.getLogger(__name__)


def _price(value: Optional[str]) -> float:
    try:
        return float(value or "0")
    except (TypeError, ValueError):
        return 0.0


def is_premium_pricing(pricing: ModelPricing) -> bool:
    """A model is premium if prompt or completion tokens cost anything"""
    return _price(pricing.prompt) > 0 or _price(pricing.completion) > 0


def build_catalog(
    raw_models: List[Dict[str, Any]],
    allowed_providers: List[str],
) -> List[CatalogModel]:
    """Filter, classify and sort raw provider catalog entries"""
    models = []
    for raw in raw_models:
        model_id = raw.get("id", "")
        modality = (raw.get("architecture") or {}).get("modality") or ""
        if "text" not in modality:
            continue
        if not any(model_id.startswith(prefix) for prefix in allowed_providers):
            continue

        pricing = ModelPricing(**(raw.get("pricing") or {}))
        models.append(CatalogModel(
            id=model_id,
            name=raw.get("name") or model_id,
            context_length=raw.get("context_length"),
            pricing=pricing,
            is_premium=is_premium_pricing(pricing),
            supports_reasoning=supports_reasoning(model_id),
            supports_search=supports_search(model_id),
        ))

    models.sort(key=lambda model: (model.is_premium, model.name.casefold(), model.name))
    return models


class ModelCatalog:
    """Cached view of the provider's model catalog"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        allowed_providers: List[str],
        ttl_seconds: int = 3600,
    ):
        self.client = client
        self.url = url
        self.allowed_providers = allowed_providers
        self.ttl_seconds = ttl_seconds
        self._models: Optional[List[CatalogModel]] = None
        self._fetched_at = 0.0

    def _is_fresh(self) -> bool:
        return self._models is not None and time.monotonic() - self._fetched_at < self.ttl_seconds

    async def list_models(self, force_refresh: bool = False) -> List[CatalogModel]:
        """
        Available models, free before premium

        A failed fetch keeps serving the last catalog, or an empty list if
        none was ever loaded.
        """
        if self._is_fresh() and not force_refresh:
            return self._models

        try:
            response = await self.client.get(self.url)
            response.raise_for_status()
            raw_models = response.json().get("data", [])
        except Exception:
            logger.exception("Error fetching model catalog from %s", self.url)
            return self._models or []

        self._models = build_catalog(raw_models, self.allowed_providers)
        self._fetched_at = time.monotonic()
        logger.info("Loaded %d models into the catalog", len(self._models))
        return self._models

    def cached_model(self, model_id: str) -> Optional[CatalogModel]:
        """Look up a model in the last fetched catalog without fetching"""
        for model in self._models or []:
            if model.id == model_id:
                return model
        return None
