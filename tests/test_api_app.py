import pytest

pytest.importorskip("fastapi")
pytest.importorskip("python_multipart")

from fastapi.testclient import TestClient

from amountdetect.api_app import create_app
from amountdetect.config import Settings
from amountdetect.pipeline import AmountPipeline, ContextClassifier, MockRecognizer

BILL = "Grand Total: Rs. 1,500\nPaid: Rs. 1,000\nBalance Due: Rs. 500"


class _ExplodingClassifier(ContextClassifier):
    def classify(self, values, raw_text, raw_tokens=None):
        raise RuntimeError("boom")


def _client(pipeline=None, **env):
    settings = Settings.from_env({"AMOUNTDETECT_ALLOW_PYTESSERACT": "0", **env})
    return TestClient(create_app(pipeline=pipeline or AmountPipeline(), settings=settings))


def test_health():
    resp = _client().get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_process_text_end_to_end():
    resp = _client().post("/process", data={"text": BILL})

    assert resp.status_code == 200
    body = resp.json()
    assert body["currency"] == "INR"
    assert [(a["type"], a["value"]) for a in body["amounts"]] == [
        ("total_bill", 1500),
        ("paid", 1000),
        ("due", 500),
    ]
    assert resp.headers["X-Request-ID"]


def test_step_by_step_round_trip():
    client = _client()

    step1 = client.post("/step1", data={"text": BILL}).json()
    step2 = client.post("/step2", json={"raw_tokens": step1["raw_tokens"]}).json()
    step3 = client.post(
        "/step3",
        json={"normalized_amounts": step2["normalized_amounts"], "raw_text": BILL, "raw_tokens": step1["raw_tokens"]},
    ).json()
    step4 = client.post(
        "/step4",
        json={"amounts": step3["amounts"], "currency": step1["currency_hint"], "raw_text": BILL},
    )

    assert step1["currency_hint"] == "INR"
    assert step2["normalized_amounts"] == [1500, 1000, 500]
    assert [a["type"] for a in step3["amounts"]] == ["total_bill", "paid", "due"]
    assert step4.status_code == 200
    assert step4.json()["amounts"][2]["source"] == "text: 'Due: Rs. 500'"


def test_guardrails_map_to_400():
    client = _client()

    noisy = client.post("/step1", data={"text": "thank you"})
    empty = client.post("/step2", json={"raw_tokens": []})

    assert noisy.status_code == 400
    assert noisy.json() == {"status": "no_amounts_found", "reason": "document too noisy"}
    assert empty.status_code == 400
    assert empty.json()["reason"] == "no numeric tokens"


def test_schema_violations_map_to_400():
    resp = _client().post("/step2", json={"raw_tokens": "Rs 100"})

    assert resp.status_code == 400


def test_internal_errors_map_to_500():
    client = _client(pipeline=AmountPipeline(classifier=_ExplodingClassifier()))

    resp = client.post("/process", data={"text": BILL})

    assert resp.status_code == 500
    assert resp.json() == {"error": "server_error"}


def test_uploaded_image_goes_through_ocr():
    import io

    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", (16, 16), "white").save(buf, format="PNG")
    recognizer = MockRecognizer("Total: $25\nPaid: $25")
    client = _client(pipeline=AmountPipeline(recognizer=recognizer))

    resp = client.post("/process", files={"file": ("bill.png", buf.getvalue(), "image/png")})

    assert resp.status_code == 200
    assert resp.json()["currency"] == "USD"
    assert len(recognizer.calls) == 1


def test_oversized_upload_is_rejected():
    client = _client(AMOUNTDETECT_MAX_UPLOAD_MB="1")

    payload = b"x" * (1024 * 1024 + 1)
    resp = client.post("/process", files={"file": ("big.png", payload, "image/png")})

    assert resp.status_code == 413
