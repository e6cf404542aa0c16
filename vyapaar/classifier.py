"""Receipt classification through Gemini.

The model only ever proposes values for an editable draft. Its category and
business unit are forced back into the configured taxonomy, and any failure
is reported as ``ClassificationError`` so the form can fall back to manual
entry.
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from vyapaar.config import DEFAULT_MODEL
from vyapaar.constants import FALLBACK_CATEGORY
from vyapaar.errors import ClassificationError
from vyapaar.functional import is_calendar_date

logger = logging.getLogger(__name__)

MAX_WIDTH = 800
JPEG_QUALITY = 70

MANUAL_ENTRY_ADVISORY = "Could not auto-scan receipt. Please enter details manually."


RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "amount": {"type": "number"},
        "date": {"type": "string"},
        "merchant": {"type": "string"},
        "description": {"type": "string"},
        "referenceNumber": {"type": "string"},
        "category": {"type": "string"},
        "businessUnit": {"type": "string"},
    },
}


@dataclass(frozen=True)
class ReceiptSuggestion:
    amount: Optional[float] = None
    date: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    reference_number: Optional[str] = None
    category: Optional[str] = None
    business_unit: Optional[str] = None
    confidence: float = 0.0


def prepare_image(image_bytes: bytes, max_width: int = MAX_WIDTH) -> bytes:
    """Downscale to ``max_width`` and re-encode as JPEG."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise ClassificationError(f"not a readable image: {exc}") from exc

    if img.width > max_width:
        height = round(img.height * max_width / img.width)
        img = img.resize((max_width, height))

    out = io.BytesIO()
    img.save(out, format="JPEG", quality=JPEG_QUALITY)
    return out.getvalue()


def build_prompt(categories: Sequence[str], business_units: Sequence[str]) -> str:
    return (
        "Analyze this image of a receipt, invoice, or payment screenshot (PhonePe/GPay).\n"
        "Extract the following information:\n"
        "- Total Amount (number)\n"
        "- Date (YYYY-MM-DD format)\n"
        "- Merchant or Payee Name\n"
        "- A short description of the items/service\n"
        "- UTR or Transaction Reference Number (if visible)\n"
        f"- Guess the Expense Category strictly from this list: {', '.join(categories)}\n"
        "- Guess the Business Unit strictly from this list based on context if visible: "
        f"{', '.join(business_units)}. If unsure, leave null.\n"
        "\nReturn JSON only."
    )


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _amount(value: Any) -> Optional[float]:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if amount >= 0 else None


def constrain_to_taxonomy(
    raw: Dict[str, Any],
    categories: Sequence[str],
    business_units: Sequence[str],
    confidence: float = 1.0,
) -> ReceiptSuggestion:
    """Map the model's raw JSON onto a suggestion inside the current taxonomy."""
    category = raw.get("category")
    business_unit = raw.get("businessUnit")
    raw_date = _text(raw.get("date"))

    return ReceiptSuggestion(
        amount=_amount(raw.get("amount")),
        date=raw_date if raw_date and is_calendar_date(raw_date) else None,
        merchant=_text(raw.get("merchant")),
        description=_text(raw.get("description")),
        reference_number=_text(raw.get("referenceNumber")),
        category=category if category in categories else FALLBACK_CATEGORY,
        business_unit=business_unit if business_unit in business_units else None,
        confidence=confidence,
    )


def demo_suggestion(categories: Sequence[str], business_units: Sequence[str], today: Optional[date] = None) -> ReceiptSuggestion:
    return ReceiptSuggestion(
        amount=1234.50,
        date=(today or date.today()).isoformat(),
        merchant="Demo Merchant (No API Key)",
        description="Auto-detected from receipt (Mock)",
        reference_number="UPI-1234567890",
        category=categories[0] if categories else "Materials",
        business_unit=business_units[0] if business_units else "Head Office",
        confidence=0.9,
    )


class ReceiptClassifier:
    """Async client for the receipt-reading model.

    ``client`` is a ``google.genai.Client`` (or anything exposing
    ``aio.models.generate_content``). Without an API key or client the
    classifier answers with a demo suggestion.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: Optional[float] = None,
        client: Any = None,
    ):
        self.model = model
        self.timeout = timeout
        if client is None and api_key:
            from google import genai
            client = genai.Client(api_key=api_key)
        self.client = client

    @property
    def is_live(self) -> bool:
        return self.client is not None

    async def analyze(
        self,
        image_bytes: bytes,
        categories: Sequence[str],
        business_units: Sequence[str],
    ) -> ReceiptSuggestion:
        if not self.is_live:
            logger.warning("No Gemini API key configured; returning demo suggestion")
            return demo_suggestion(categories, business_units)

        jpeg = prepare_image(image_bytes)
        logger.info("Sending receipt (%d bytes) to %s", len(jpeg), self.model)

        try:
            call = self._generate(jpeg, build_prompt(categories, business_units))
            if self.timeout:
                response = await asyncio.wait_for(call, timeout=self.timeout)
            else:
                response = await call
        except asyncio.TimeoutError as exc:
            logger.error("Receipt analysis timed out after %ss", self.timeout)
            raise ClassificationError("receipt analysis timed out") from exc
        except Exception as exc:
            logger.error("Error analyzing receipt: %s", exc)
            raise ClassificationError("Failed to analyze receipt image.") from exc

        try:
            raw = json.loads(getattr(response, "text", None) or "{}")
        except json.JSONDecodeError as exc:
            logger.error("Model returned non-JSON text: %s", exc)
            raise ClassificationError("model response was not JSON") from exc
        if not isinstance(raw, dict):
            raise ClassificationError("model response was not a JSON object")

        return constrain_to_taxonomy(raw, categories, business_units)

    async def _generate(self, jpeg: bytes, prompt: str):
        from google.genai import types

        return await self.client.aio.models.generate_content(
            model=self.model,
            contents=[
                types.Part.from_bytes(data=jpeg, mime_type="image/jpeg"),
                prompt,
            ],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=RESPONSE_SCHEMA,
            ),
        )


# draft keys filled from a suggestion
_PREFILL_FIELDS = (
    "amount", "date", "merchant", "description", "category", "business_unit", "reference_number",
)


def prefill_draft(draft: Dict[str, Any], suggestion: ReceiptSuggestion) -> Dict[str, Any]:
    """Return a copy of ``draft`` with every non-empty suggested field applied."""
    merged = dict(draft)
    for name in _PREFILL_FIELDS:
        value = getattr(suggestion, name)
        if value:
            merged[name] = value
    return merged


def classify_into_draft(
    classifier: ReceiptClassifier,
    image_bytes: bytes,
    draft: Dict[str, Any],
    categories: Sequence[str],
    business_units: Sequence[str],
) -> Tuple[Dict[str, Any], Optional[str]]:
    """Run one classification attempt for a form.

    Returns the (possibly) prefilled draft and an advisory message; the
    advisory is ``None`` on success and the draft is untouched on failure.
    """
    try:
        suggestion = asyncio.run(classifier.analyze(image_bytes, categories, business_units))
    except ClassificationError:
        return dict(draft), MANUAL_ENTRY_ADVISORY
    return prefill_draft(draft, suggestion), None
