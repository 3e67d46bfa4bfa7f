from __future__ import annotations

from functools import lru_cache

from app.core.config import settings
from app.services.admission import SearchAdmission
from app.services.extraction import GeminiVisionModel, VisionModel
from app.services.revalidation import HttpRevalidator, Revalidator
from app.services.storage import ImageStorage, SupabaseImageStorage

# Process-wide clients for external collaborators.
# Tests swap these through app.dependency_overrides.


@lru_cache
def get_storage() -> ImageStorage:
    return SupabaseImageStorage.from_settings(settings)


@lru_cache
def get_vision_model() -> VisionModel:
    return GeminiVisionModel(settings)


@lru_cache
def get_revalidator() -> Revalidator:
    return HttpRevalidator(settings.REVALIDATE_URL, settings.REVALIDATE_SECRET)


@lru_cache
def get_admission() -> SearchAdmission:
    return SearchAdmission(
        rate_limit=settings.SEARCH_RATE_LIMIT,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        blocked=settings.BLOCKED_FINGERPRINTS,
    )
