import pytest

from amountdetect.pipeline import AmountKind, normalize_token, normalize_tokens


def test_currency_and_grouping_are_stripped():
    result = normalize_tokens(["Rs. 1,500", "₹ 1,000", "$40.50", "INR 500"])

    assert result.ok
    assert result.output.normalized_amounts == [1500.0, 1000.0, 40.5, 500.0]
    assert result.output.normalization_confidence == pytest.approx(0.95)


def test_ocr_confusions_are_corrected_with_lower_confidence():
    item = normalize_token("l2O")

    assert item is not None
    assert item.value == 120.0
    assert item.confidence == pytest.approx(0.75)


def test_percentages_are_kept_apart_from_amounts():
    result = normalize_tokens(["1200", "10%"])

    assert result.output.normalized_amounts == [1200.0]
    assert [p.value for p in result.output.percentages] == [10.0]
    assert result.output.percentages[0].kind == AmountKind.PERCENT
    assert result.output.normalization_confidence == pytest.approx((0.95 + 0.6) / 2)


def test_unparseable_tokens_lower_confidence_without_failing():
    result = normalize_tokens(["300", "---", 42])

    assert result.output.normalized_amounts == [300.0]
    assert result.output.normalization_confidence == pytest.approx((0.95 + 0.2 + 0.2) / 3)


def test_empty_token_list_is_a_guardrail():
    result = normalize_tokens([])

    assert result.guardrail
    assert result.to_payload() == {"status": "no_amounts_found", "reason": "no numeric tokens"}


def test_only_percentages_is_a_guardrail():
    result = normalize_tokens(["18%", "5%"])

    assert result.guardrail
    assert result.reason == "normalized nothing"


def test_malformed_numbers_are_rejected():
    assert normalize_token("1.2.3") is None
    assert normalize_token("   ") is None
    assert normalize_token(None) is None


def test_payload_shape():
    payload = normalize_tokens(["Rs 250"]).to_payload()

    assert payload == {"normalized_amounts": [250.0], "normalization_confidence": 0.95}
