# app/services/extraction.py
from __future__ import annotations

import enum
import io
import json
import logging
import re
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Any, Dict, Optional, Protocol, Tuple

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from PIL import Image, UnidentifiedImageError

from app.core.config import Settings, settings as default_settings
from app.core.errors import ExtractionProviderError, InvalidImage, Misconfigured
from app.schemas.common import ActionResult
from app.services.admission import AdmissionCheck, enforce

logger = logging.getLogger(__name__)


class ExtractionMode(str, enum.Enum):
    LISTING = "listing"
    SEARCH_HINT = "search_hint"


LISTING_PROMPT = dedent("""
    Analyze this car image and extract the following information:
    1. Make (manufacturer)
    2. Model
    3. Year (approximately)
    4. Color
    5. Body type (SUV, Sedan, Hatchback, etc.)
    6. Mileage
    7. Fuel type (your best guess from "Petrol", "Diesel", "Electric", "Hybrid", "Plug-in Hybrid")
    8. Transmission type (your best guess)
    9. Price (your best guess)
    10. Short description to be added to a car listing

    Format your response as a clean JSON object with these fields:
    {
      "make": "",
      "model": "",
      "year": 0000,
      "color": "",
      "price": "",
      "mileage": "",
      "bodyType": "",
      "fuelType": "",
      "transmission": "",
      "description": "",
      "confidence": 0.0
    }

    For confidence, provide a value between 0 and 1 representing how confident you are in your overall identification.
    Only respond with the JSON object, nothing else.
""").strip()

SEARCH_HINT_PROMPT = dedent("""
    Analyze this car image and extract the following information for a search query:
    1. Make (manufacturer)
    2. Body type (SUV, Sedan, Hatchback, etc.)
    3. Color

    Format your response as a clean JSON object with these fields:
    {
      "make": "",
      "bodyType": "",
      "color": "",
      "confidence": 0.0
    }

    For confidence, provide a value between 0 and 1 representing how confident you are in your overall identification.
    Only respond with the JSON object, nothing else.
""").strip()

PROMPTS: Dict[ExtractionMode, str] = {
    ExtractionMode.LISTING: LISTING_PROMPT,
    ExtractionMode.SEARCH_HINT: SEARCH_HINT_PROMPT,
}

REQUIRED_KEYS: Dict[ExtractionMode, Tuple[str, ...]] = {
    ExtractionMode.LISTING: (
        "make",
        "model",
        "year",
        "color",
        "price",
        "mileage",
        "bodyType",
        "fuelType",
        "transmission",
        "description",
        "confidence",
    ),
    ExtractionMode.SEARCH_HINT: ("make", "bodyType", "color", "confidence"),
}

# ``` / ```json / ```JSON ... with the optional newline after the marker
_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*\n?")


class VisionModel(Protocol):
    def generate(self, image: bytes, mime_type: str, prompt: str) -> str: ...


@dataclass
class GeminiVisionModel:
    """
    Thin wrapper around google-genai.

    The client is created on first use so that a missing GEMINI_API_KEY only
    fails the requests that actually need the model.
    """

    settings: Settings = field(default_factory=lambda: default_settings)

    def __post_init__(self) -> None:
        self._client: Optional[Any] = None

    def _get_client(self) -> Any:
        if not self.settings.GEMINI_API_KEY:
            raise Misconfigured("Gemini API key is not configured")
        if self._client is None:
            self._client = genai.Client(api_key=self.settings.GEMINI_API_KEY)
        return self._client

    def generate(self, image: bytes, mime_type: str, prompt: str) -> str:
        client = self._get_client()

        # Part.from_bytes is sent base64-encoded inline
        image_part = genai_types.Part.from_bytes(data=image, mime_type=mime_type)
        try:
            resp = client.models.generate_content(
                model=self.settings.GEMINI_MODEL,
                contents=[image_part, prompt],
            )
        except genai_errors.APIError as e:
            raise ExtractionProviderError(f"Gemini API error: {e}") from e
        except Exception as e:
            raise ExtractionProviderError(f"Gemini API error: {type(e).__name__}: {e}") from e

        return getattr(resp, "text", "") or ""


# -------------------------
# response handling
# -------------------------

def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers (with or without a language tag)."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_extraction(text: str, mode: ExtractionMode) -> ActionResult:
    """
    Parse raw model output for the given mode.

    Never raises: bad output comes back as a failure result so the UI can ask
    for another photo.
    """
    cleaned = strip_code_fences(text)

    try:
        details = json.loads(cleaned)
    except ValueError:
        logger.warning("Failed to parse AI response (mode=%s). Raw response: %r", mode.value, text)
        return ActionResult.fail("Failed to parse AI response", "PARSE_FAILURE")

    if not isinstance(details, dict):
        logger.warning("AI response is not a JSON object (mode=%s): %r", mode.value, text)
        return ActionResult.fail("AI response is not a JSON object", "MALFORMED_RESPONSE")

    missing = [key for key in REQUIRED_KEYS[mode] if key not in details]
    if missing:
        logger.warning("AI response missing fields %s (mode=%s)", missing, mode.value)
        return ActionResult.fail(
            f"AI response missing required fields: {', '.join(missing)}",
            "MALFORMED_RESPONSE",
        )

    return ActionResult.ok(details)


def extract_car_details(
    image: bytes,
    mime_type: str,
    mode: ExtractionMode,
    model: VisionModel,
) -> ActionResult:
    """
    Ask the vision model for a draft listing (or search hint) from one photo.

    Raises:
        Misconfigured: no API key
        ExtractionProviderError: transport / provider failure
    """
    text = model.generate(image, mime_type, PROMPTS[mode])
    return parse_extraction(text, mode)


def extract_search_hint(
    image: bytes,
    mime_type: str,
    fingerprint: str,
    admission: AdmissionCheck,
    model: VisionModel,
) -> ActionResult:
    """
    Search-hint extraction for the public image search.

    The admission check runs first (cost 1); a denied request never reaches
    the model.

    Raises:
        RateLimited / Blocked: admission denied
        Misconfigured / ExtractionProviderError: as extract_car_details
    """
    enforce(admission.protect(fingerprint, requested=1))
    return extract_car_details(image, mime_type, ExtractionMode.SEARCH_HINT, model)


# -------------------------
# upload validation
# -------------------------

def detect_image_mime(content: bytes, declared: Optional[str]) -> str:
    """
    Check that `content` is an image and return the MIME type to send.

    The declared content type wins when it is an image/* type; otherwise the
    type Pillow detects is used.
    """
    if not content:
        raise InvalidImage("Empty file")

    try:
        with Image.open(io.BytesIO(content)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImage(f"Invalid image file: {e}") from e

    if declared and declared.lower().startswith("image/"):
        return declared.lower()

    mime = Image.MIME.get(fmt or "")
    if not mime:
        raise InvalidImage(f"Unsupported image format: {fmt}")
    return mime
