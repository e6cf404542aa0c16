import asyncio
import io
import json
from datetime import date
from types import SimpleNamespace

import pytest
from PIL import Image

from vyapaar.classifier import (
    MANUAL_ENTRY_ADVISORY,
    MAX_WIDTH,
    ReceiptClassifier,
    ReceiptSuggestion,
    build_prompt,
    classify_into_draft,
    constrain_to_taxonomy,
    demo_suggestion,
    prefill_draft,
    prepare_image,
)
from vyapaar.constants import DEFAULT_BUSINESS_UNITS, DEFAULT_CATEGORIES
from vyapaar.errors import ClassificationError

CATEGORIES = list(DEFAULT_CATEGORIES)
UNITS = list(DEFAULT_BUSINESS_UNITS)


def png_bytes(width=1600, height=1200):
    out = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 255)).save(out, format="PNG")
    return out.getvalue()


class FakeModels:
    def __init__(self, text=None, exc=None, delay=0):
        self.text = text
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc:
            raise self.exc
        return SimpleNamespace(text=self.text)


def fake_client(**kwargs):
    models = FakeModels(**kwargs)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


def test_prepare_image_downscales_to_jpeg():
    jpeg = prepare_image(png_bytes(1600, 1200))
    img = Image.open(io.BytesIO(jpeg))

    assert img.format == "JPEG"
    assert img.size == (MAX_WIDTH, 600)


def test_prepare_image_keeps_small_width():
    img = Image.open(io.BytesIO(prepare_image(png_bytes(300, 200))))
    assert img.size == (300, 200)


def test_prepare_image_rejects_garbage():
    with pytest.raises(ClassificationError):
        prepare_image(b"definitely not an image")


def test_build_prompt_lists_taxonomy():
    prompt = build_prompt(["Fuel"], ["Brick Factory"])
    assert "Fuel" in prompt
    assert "Brick Factory" in prompt


def test_constrain_keeps_known_values():
    s = constrain_to_taxonomy(
        {
            "amount": 540,
            "date": "2024-03-09",
            "merchant": " Indian Oil ",
            "referenceNumber": "UTR998",
            "category": "Fuel & Transport",
            "businessUnit": "Brick Factory",
        },
        CATEGORIES,
        UNITS,
    )
    assert s.amount == 540
    assert s.merchant == "Indian Oil"
    assert s.reference_number == "UTR998"
    assert s.category == "Fuel & Transport"
    assert s.business_unit == "Brick Factory"


def test_constrain_forces_unknown_category_to_other_and_drops_unit():
    s = constrain_to_taxonomy({"category": "Snacks", "businessUnit": "Moon Base"}, CATEGORIES, UNITS)
    assert s.category == "Other"
    assert s.business_unit is None


def test_constrain_drops_bad_date_and_negative_amount():
    s = constrain_to_taxonomy({"date": "09/03/2024", "amount": -3}, CATEGORIES, UNITS)
    assert s.date is None
    assert s.amount is None


def test_demo_suggestion():
    s = demo_suggestion(CATEGORIES, UNITS, today=date(2024, 5, 2))
    assert s.amount == 1234.50
    assert s.date == "2024-05-02"
    assert s.category == CATEGORIES[0]
    assert s.business_unit == UNITS[0]


@pytest.mark.asyncio
async def test_analyze_without_key_returns_demo():
    classifier = ReceiptClassifier()
    assert not classifier.is_live

    s = await classifier.analyze(b"ignored", CATEGORIES, UNITS)
    assert s.merchant == "Demo Merchant (No API Key)"


@pytest.mark.asyncio
async def test_analyze_live_constrains_response():
    payload = {"amount": 820.0, "merchant": "Tea Point", "category": "Snacks", "businessUnit": "School"}
    client, models = fake_client(text=json.dumps(payload))
    classifier = ReceiptClassifier(client=client, model="test-model")

    s = await classifier.analyze(png_bytes(), CATEGORIES, UNITS)

    assert s.amount == 820.0
    assert s.category == "Other"
    assert s.business_unit == "School"
    assert models.calls[0]["model"] == "test-model"


@pytest.mark.asyncio
async def test_analyze_wraps_client_failure():
    client, _ = fake_client(exc=RuntimeError("quota exceeded"))
    classifier = ReceiptClassifier(client=client)

    with pytest.raises(ClassificationError):
        await classifier.analyze(png_bytes(), CATEGORIES, UNITS)


@pytest.mark.asyncio
async def test_analyze_rejects_non_json():
    client, _ = fake_client(text="Sorry, I cannot read that.")
    with pytest.raises(ClassificationError):
        await ReceiptClassifier(client=client).analyze(png_bytes(), CATEGORIES, UNITS)


@pytest.mark.asyncio
async def test_analyze_times_out():
    client, _ = fake_client(text="{}", delay=1)
    classifier = ReceiptClassifier(client=client, timeout=0.01)

    with pytest.raises(ClassificationError):
        await classifier.analyze(png_bytes(), CATEGORIES, UNITS)


def test_prefill_draft_only_overwrites_present_fields():
    draft = {"merchant": "typed by hand", "payment_method": "Cash", "category": "Labor"}
    s = ReceiptSuggestion(amount=99.0, merchant=None, category="Utilities")

    merged = prefill_draft(draft, s)

    assert merged["amount"] == 99.0
    assert merged["merchant"] == "typed by hand"
    assert merged["category"] == "Utilities"
    assert merged["payment_method"] == "Cash"
    assert "amount" not in draft


def test_classify_into_draft_success():
    client, _ = fake_client(text=json.dumps({"amount": 75, "merchant": "Kirana"}))
    draft, advisory = classify_into_draft(
        ReceiptClassifier(client=client), png_bytes(), {"payment_method": "Cash"}, CATEGORIES, UNITS
    )
    assert advisory is None
    assert draft["merchant"] == "Kirana"
    assert draft["payment_method"] == "Cash"


def test_classify_into_draft_failure_leaves_draft():
    client, _ = fake_client(exc=RuntimeError("boom"))
    original = {"merchant": "kept"}

    draft, advisory = classify_into_draft(
        ReceiptClassifier(client=client), png_bytes(), original, CATEGORIES, UNITS
    )

    assert advisory == MANUAL_ENTRY_ADVISORY
    assert draft == original


def test_constrain_drops_impossible_date():
    assert constrain_to_taxonomy({"date": "2024-02-30"}, CATEGORIES, UNITS).date is None
    assert constrain_to_taxonomy({"date": "2024-02-29"}, CATEGORIES, UNITS).date == "2024-02-29"
