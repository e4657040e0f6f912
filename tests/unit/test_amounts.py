"""Unit tests for total-amount parsing and scoring."""

from decimal import Decimal

import pytest

from fiscal.extraction.amounts import (
    find_amount_candidates,
    find_labeled_total,
    find_total,
    parse_amount,
)
from fiscal.extraction.profiles import DIGITAL, SCANNED, AmountWeights

WEIGHTS = DIGITAL.amounts
FILLER = "Producto de ejemplo sin precio\n" * 6


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.965.244,64", Decimal("1965244.64")),
        ("1.500,00", Decimal("1500.00")),
        ("$ 1.500,00", Decimal("1500.00")),
        ("250,50", Decimal("250.50")),
        ("12345,67", Decimal("12345.67")),
    ],
)
def test_parse_amount(raw: str, expected: Decimal) -> None:
    assert parse_amount(raw) == expected


def test_parse_amount_invalid() -> None:
    assert parse_amount("") is None
    assert parse_amount("abc") is None


@pytest.mark.parametrize(
    "text",
    [
        "Importe Total: $ 1.965.244,64",
        "TOTAL A PAGAR 1.965.244,64",
        "Total: $1.965.244,64",
        "Subtotal 1.500,00\nTOTAL 1.965.244,64\n",
    ],
)
def test_labeled_total(text: str) -> None:
    found = find_labeled_total(text, WEIGHTS)

    assert found is not None
    assert found.value == Decimal("1965244.64")


def test_labeled_total_priority() -> None:
    """An explicit total amount label wins over a generic total label."""
    text = "Total: 900,00\nImporte Total: 1.089,00"

    found = find_labeled_total(text, WEIGHTS)

    assert found.value == Decimal("1089.00")
    assert found.reasons == ("label_pattern_0",)


def test_values_below_minimum_never_selected() -> None:
    assert find_total("Total: 50,00\nRecargo 12,00", WEIGHTS) is None
    assert find_amount_candidates("Propina 99,99", WEIGHTS) == []


def test_labeled_below_minimum_falls_through() -> None:
    text = "Total: 50,00\nTotal: 1.250,00"

    assert find_labeled_total(text, WEIGHTS).value == Decimal("1250.00")


def test_heuristic_prefers_tail_vocabulary_and_largest() -> None:
    text = (
        "Servicio mensual 1.000,00\n"
        "IVA 21% 210,00\n"
        f"{FILLER}"
        "Monto a abonar $ 1.210,00\n"
    )

    candidates = find_amount_candidates(text, WEIGHTS)

    assert candidates[0].value == Decimal("1210.00")
    assert "total_vocabulary+30" in candidates[0].reasons
    assert "largest+15" in candidates[0].reasons
    assert find_total(text, WEIGHTS).value == Decimal("1210.00")


def test_heuristic_tolerates_ocr_substitutions() -> None:
    text = "Saldo anterior 9.999,00\n" f"{FILLER}" "T0TAL 2.500,00\n"

    best = find_total(text, SCANNED.amounts)

    assert best.value == Decimal("2500.00")


def test_weights_change_ranking() -> None:
    """The same scan ranks differently under a different weight table."""
    text = "Saldo anterior 9.999,00\n" f"{FILLER}" "T0TAL 2.500,00\n"
    weights = AmountWeights(in_tail=0, total_vocabulary_on_line=0, largest_value=50)

    assert find_total(text, weights).value == Decimal("9999.00")
