import time

import pytest
from PIL import Image

from amountdetect.pipeline import (
    AmountPipeline,
    ClassifierConfig,
    ContextClassifier,
    CurrencyHint,
    MockLabelService,
    MockRecognizer,
)

BILL = "Grand Total: Rs. 1,500\nPaid: Rs. 1,000\nBalance Due: Rs. 500"


def _image():
    return Image.new("RGB", (32, 16), "white")


class _ExplodingClassifier(ContextClassifier):
    def classify(self, values, raw_text, raw_tokens=None):
        raise RuntimeError("boom")


def test_full_run_on_text():
    result = AmountPipeline().run_full(text=BILL)

    assert result.ok
    assert result.to_payload() == {
        "currency": "INR",
        "amounts": [
            {"type": "total_bill", "value": 1500.0, "source": "text: 'Total: Rs. 1,500'"},
            {"type": "paid", "value": 1000.0, "source": "text: 'Paid: Rs. 1,000'"},
            {"type": "due", "value": 500.0, "source": "text: 'Due: Rs. 500'"},
        ],
        "status": "ok",
    }


def test_extract_reports_tokens_hint_and_confidence():
    result = AmountPipeline().extract(text=BILL)

    assert result.to_payload() == {
        "raw_tokens": ["Rs. 1,500", "Rs. 1,000", "Rs. 500"],
        "currency_hint": "INR",
        "confidence": pytest.approx(0.8),
    }
    assert result.output.raw_text == BILL


def test_extract_without_usable_text_is_a_guardrail():
    pipeline = AmountPipeline()

    for text in (None, "", "   ", "thank you for visiting"):
        result = pipeline.extract(text=text)
        assert result.guardrail
        assert result.reason == "document too noisy"


def test_full_run_stops_at_first_guardrail():
    trace = []
    result = AmountPipeline().run_full(text="Discount: 10%", trace=trace)

    assert result.to_payload() == {"status": "no_amounts_found", "reason": "normalized nothing"}
    assert [entry["state"] for entry in trace] == ["extracted", "failed"]
    assert trace[-1]["ok"] is False


def test_trace_records_each_state():
    trace = []
    AmountPipeline().run_full(text=BILL, trace=trace)

    assert [entry["state"] for entry in trace] == [
        "extracted",
        "normalized",
        "classified",
        "finalized",
        "done",
    ]


def test_ocr_text_is_prepended_to_caller_text():
    recognizer = MockRecognizer("Total: $40")
    pipeline = AmountPipeline(recognizer=recognizer)

    result = pipeline.extract(text="Paid: $40", image=_image())

    assert len(recognizer.calls) == 1
    assert result.output.raw_text == "Total: $40\nPaid: $40"
    assert result.output.raw_tokens == ["$40", "$40"]
    assert result.output.currency_hint == CurrencyHint.USD


def test_ocr_timeout_degrades_to_caller_text():
    recognizer = MockRecognizer("Total: 999", delay_sec=0.5)
    pipeline = AmountPipeline(recognizer=recognizer, ocr_timeout_sec=0.05)

    result = pipeline.run_full(text="Total: 120", image=_image())

    assert result.ok
    assert [a.value for a in result.output.amounts] == [120.0]


def test_ocr_failure_without_text_is_a_guardrail():
    recognizer = MockRecognizer(error=RuntimeError("tesseract crashed"))
    result = AmountPipeline(recognizer=recognizer).run_full(image=_image())

    assert result.guardrail
    assert result.reason == "document too noisy"


def test_image_without_recognizer_is_ignored():
    result = AmountPipeline(recognizer=None).extract(text="Total: 50", image=_image())

    assert result.output.raw_tokens == ["50"]


def test_unreadable_image_bytes_are_ignored():
    recognizer = MockRecognizer("Total: 1")
    result = AmountPipeline(recognizer=recognizer).extract(text="Paid 20", image=b"not an image")

    assert recognizer.calls == []
    assert result.output.raw_tokens == ["20"]


def test_unexpected_fault_becomes_internal_error():
    pipeline = AmountPipeline(classifier=_ExplodingClassifier())

    result = pipeline.run_full(text=BILL)

    assert result.failed
    assert result.to_payload() == {"error": "server_error"}


def test_label_service_is_consulted_during_full_run():
    service = MockLabelService({1500.0: "total_bill", 1000.0: "paid", 500.0: "due"})
    pipeline = AmountPipeline(classifier=ContextClassifier(ClassifierConfig(label_service=service)))

    result = pipeline.run_full(text=BILL)

    assert result.ok
    assert len(service.calls) == 1


def test_stages_accept_wire_payloads():
    pipeline = AmountPipeline()

    classified = pipeline.classify([1500.0], "Total: 1500", ["1500"])
    final = pipeline.finalize(classified.to_payload()["amounts"], "UNKNOWN", "Total: 1500")

    assert final.to_payload()["amounts"] == [
        {"type": "total_bill", "value": 1500.0, "source": "text: 'Total: 1500'"}
    ]


def test_dollar_total_with_cents():
    result = AmountPipeline().run_full(text="Total: $120.50")

    assert result.to_payload() == {
        "currency": "USD",
        "amounts": [{"type": "total_bill", "value": 120.5, "source": "text: 'Total: $120.50'"}],
        "status": "ok",
    }


@pytest.mark.parametrize("text, value", [("Bill 1500rs", 1500.0), ("Bill 250kg", 250.0)])
def test_amount_glued_to_a_unit_keeps_its_last_digit(text, value):
    result = AmountPipeline().run_full(text=text)

    assert result.ok
    assert [(a["type"], a["value"]) for a in result.to_payload()["amounts"]] == [("total_bill", value)]


def test_dot_leader_line_finishes_quickly():
    t0 = time.perf_counter()
    result = AmountPipeline().run_full(text="Item " + "." * 20000 + " 12")

    assert time.perf_counter() - t0 < 2.0
    assert not result.failed


def test_duplicate_roles_keep_first_value():
    pipeline = AmountPipeline()
    amounts = [
        {"type": "total_bill", "value": 100},
        {"type": "total_bill", "value": 150},
        {"type": "paid", "value": 80},
    ]

    result = pipeline.finalize(amounts, "UNKNOWN", "")

    assert [(a["type"], a["value"]) for a in result.to_payload()["amounts"]] == [("total_bill", 100), ("paid", 80)]
