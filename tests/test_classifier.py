import pytest

from amountdetect.pipeline import (
    AmountRole,
    ClassifierConfig,
    ContextClassifier,
    LabelPolicy,
    MockLabelService,
    validate_label_map,
)
from amountdetect.pipeline.classifier import EXPLICIT_SOURCE

BILL = "Grand Total: Rs. 1,500\nPaid: Rs. 1,000\nBalance Due: Rs. 500"
TOKENS = ["Rs. 1,500", "Rs. 1,000", "Rs. 500"]


def _roles(result):
    return [(a.type, a.value) for a in result.output.amounts]


def test_context_labels_with_snippet_sources():
    result = ContextClassifier().classify([1500, 1000, 500], BILL, TOKENS)

    assert result.ok
    assert _roles(result) == [
        (AmountRole.TOTAL_BILL, 1500.0),
        (AmountRole.PAID, 1000.0),
        (AmountRole.DUE, 500.0),
    ]
    assert result.output.amounts[0].source.startswith("text: 'Grand Total: Rs. 1,500")
    assert result.output.confidence == pytest.approx(0.88)


def test_payload_drops_sources():
    payload = ContextClassifier().classify([1500], BILL, TOKENS).to_payload()

    assert payload["amounts"] == [{"type": "total_bill", "value": 1500.0}]
    assert set(payload) == {"amounts", "confidence"}


def test_values_without_tokens_are_located_by_their_printed_form():
    result = ContextClassifier().classify([300], "Total 300", [])

    assert _roles(result) == [(AmountRole.TOTAL_BILL, 300.0)]


def test_no_values_is_a_guardrail():
    result = ContextClassifier().classify([], BILL, TOKENS)

    assert result.guardrail
    assert result.reason == "no normalized amounts"


def test_external_labels_override_context_by_default():
    service = MockLabelService({1500.0: "paid", 1000.0: "total_bill"})
    classifier = ContextClassifier(ClassifierConfig(label_service=service))

    result = classifier.classify([1500, 1000, 500], BILL, TOKENS)

    assert _roles(result) == [
        (AmountRole.PAID, 1500.0),
        (AmountRole.TOTAL_BILL, 1000.0),
        (AmountRole.DUE, 500.0),
    ]
    assert service.calls == [(BILL, [1500.0, 1000.0, 500.0])]


def test_context_first_policy_only_uses_external_for_unknowns():
    service = MockLabelService({1500.0: "paid", 42.0: "tax"})
    classifier = ContextClassifier(
        ClassifierConfig(label_service=service, label_policy=LabelPolicy.CONTEXT_FIRST)
    )

    text = "Grand Total: Rs. 1,500\n" + "-" * 60 + "\nRef 42"
    result = classifier.classify([1500, 42], text, ["Rs. 1,500", "42"])

    assert _roles(result) == [(AmountRole.TOTAL_BILL, 1500.0), (AmountRole.TAX, 42.0)]


def test_failing_label_service_falls_back_to_context():
    service = MockLabelService(error=RuntimeError("quota exceeded"))
    classifier = ContextClassifier(ClassifierConfig(label_service=service))

    result = classifier.classify([1500, 1000, 500], BILL, TOKENS)

    assert result.ok
    assert _roles(result)[0] == (AmountRole.TOTAL_BILL, 1500.0)


def test_malformed_label_map_is_ignored():
    service = MockLabelService(["not", "a", "map"])
    classifier = ContextClassifier(ClassifierConfig(label_service=service))

    result = classifier.classify([500], "Balance Due: 500", ["500"])

    assert _roles(result) == [(AmountRole.DUE, 500.0)]


def test_validate_label_map_filters_keys_and_labels():
    labels = validate_label_map({"1500": "TOTAL_BILL", "abc": "paid", 200: "mystery", True: "due"})

    assert labels == {1500.0: AmountRole.TOTAL_BILL, 200.0: AmountRole.UNKNOWN}
    assert validate_label_map(None) is None
    assert validate_label_map("total") is None


def test_explicit_fallback_when_nothing_required_was_found():
    text = "Ref 77" + "." * 60 + "\nTotal:1200"
    result = ContextClassifier().classify([77], text, ["77"])

    amounts = result.output.amounts
    assert (amounts[0].type, amounts[0].value) == (AmountRole.UNKNOWN, 77.0)
    assert (amounts[1].type, amounts[1].value, amounts[1].source) == (
        AmountRole.TOTAL_BILL,
        1200.0,
        EXPLICIT_SOURCE,
    )


def test_label_policy_parse_defaults_to_external_first():
    assert LabelPolicy.parse("context_first") == LabelPolicy.CONTEXT_FIRST
    assert LabelPolicy.parse("bogus") == LabelPolicy.EXTERNAL_FIRST
    assert LabelPolicy.parse(None) == LabelPolicy.EXTERNAL_FIRST
