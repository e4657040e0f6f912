"""Unit tests for the field extraction pipeline."""

import logging
from datetime import date
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY
from pydantic import ValidationError

from fiscal.extraction.extractor import FieldExtractor, create_extractor
from fiscal.extraction.profiles import SCANNED
from fiscal.identifiers.cuit import HolderType
from fiscal.shared.config import Settings

REFERENCE = date(2024, 2, 1)

SCENARIO_A = (
    "DISTRIBUIDORA DEL SUR S.A.\n"
    "CUIT: 30-71057829-6\n"
    "Factura A\n"
    "A-00001-00000123\n"
    "Fecha de Emisión: 15/01/2024\n"
    "Total: $1.500,00\n"
)

SCENARIO_B = (
    "KIOSCO CENTRAL\n"
    "CUIT: 20-12345678-6\n"
    "11 - Factura C\n"
    "A\n"
    "Punto de Venta: 00002  Comp. Nro: 00000456\n"
    "Fecha de Emisión: 03/01/2024\n"
    "Importe Total: $ 2.300,00\n"
)


@pytest.fixture(scope="module")
def extractor() -> FieldExtractor:
    return FieldExtractor()


def _sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_scenario_a_digital(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_A, reference_date=REFERENCE)

    assert result.tax_id == "30-71057829-6"
    assert result.holder_type == HolderType.LEGAL
    assert result.issue_date == date(2024, 1, 15)
    assert result.letter == "A"
    assert result.document_type.code == 1
    assert result.classification_method == "TEXT"
    assert result.point_of_sale == 1
    assert result.sequence_number == 123
    assert result.total == Decimal("1500.00")
    assert result.full_number == "A-00001-00000123"
    assert result.success is True
    assert result.confidence >= 80
    assert result.confidence == 100
    assert result.requires_review is False
    assert result.errors == ()
    assert result.warnings == ()
    assert result.profile == "digital"


def test_scenario_a_scanned_has_lower_ceiling(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_A, profile="scanned", reference_date=REFERENCE)

    assert result.tax_id == "30-71057829-6"
    assert result.total == Decimal("1500.00")
    assert result.confidence == 90
    assert result.profile == "scanned"


def test_profile_object_accepted(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_A, profile=SCANNED, reference_date=REFERENCE)

    assert result.profile == "scanned"


def test_scenario_b_numeric_code_wins(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_B, reference_date=REFERENCE)

    assert result.letter == "C"
    assert result.document_type.code == 11
    assert result.classification_method == "CODE"
    assert result.tax_id == "20-12345678-6"
    assert result.holder_type == HolderType.NATURAL
    assert result.point_of_sale == 2
    assert result.sequence_number == 456
    assert result.issue_date == date(2024, 1, 3)
    assert result.total == Decimal("2300.00")
    assert result.full_number == "C-00002-00000456"


def test_number_letter_conflict_keeps_document_type(
    extractor: FieldExtractor, caplog: pytest.LogCaptureFixture
) -> None:
    text = (
        "CUIT: 30-71057829-6\n"
        "Factura B\n"
        "Nro: A-00001-00000123\n"
        "Fecha: 10/01/2024\n"
        "Total: $ 900,00\n"
    )

    with caplog.at_level(logging.WARNING):
        result = extractor.extract(text, reference_date=REFERENCE)

    assert result.letter == "B"
    assert result.point_of_sale == 1
    assert result.sequence_number == 123
    assert any("conflicts" in warning for warning in result.warnings)
    assert "keeping the document type" in caplog.text


def test_document_type_from_number_letter(extractor: FieldExtractor) -> None:
    text = (
        "CUIT: 30-71057829-6\n"
        "B-00004-00000077\n"
        "Fecha: 10/01/2024\n"
        "Total: $ 1.000,00\n"
        "Gracias por su compra\n"
    )

    result = extractor.extract(text, reference_date=REFERENCE)

    assert result.letter == "B"
    assert result.document_type.code == 6
    assert result.classification_method == "TEXT"


def test_point_of_sale_and_number_on_separate_lines(extractor: FieldExtractor) -> None:
    text = (
        "FACTURA\n"
        "Factura A\n"
        "Punto de Venta: 00001\n"
        "Número: 00000123\n"
        "CUIT: 30-71057829-6\n"
        "Fecha: 15/01/2024\n"
        "Total: $1.500,00\n"
    )

    result = extractor.extract(text, reference_date=REFERENCE)

    assert result.full_number == "A-00001-00000123"
    assert result.confidence == 100
    assert result.errors == ()


def test_missing_total_is_warning(extractor: FieldExtractor) -> None:
    text = SCENARIO_A.replace("Total: $1.500,00\n", "Gracias por su compra\n")

    result = extractor.extract(text, reference_date=REFERENCE)

    assert result.total is None
    assert result.confidence == 90
    assert result.success is True
    assert "Total amount not found" in result.warnings
    assert result.errors == ()


def test_missing_required_fields_reported(extractor: FieldExtractor) -> None:
    text = (
        "CUIT: 30-71057829-6\n"
        "Fecha de Emisión: 15/01/2024\n"
        "Detalle de los servicios prestados en el período\n"
    )

    result = extractor.extract(text, reference_date=REFERENCE)

    assert result.confidence == 36
    assert result.success is False
    assert result.requires_review is True
    assert result.full_number is None
    assert set(result.errors) == {
        "Missing required field: document_type",
        "Missing required field: point_of_sale",
        "Missing required field: sequence_number",
    }


def test_insufficient_text(extractor: FieldExtractor, caplog: pytest.LogCaptureFixture) -> None:
    before = _sample(
        "fiscal_extraction_documents_total", profile="digital", outcome="insufficient_text"
    )

    with caplog.at_level(logging.WARNING):
        result = extractor.extract("   Factura A   ")

    assert result.confidence == 0
    assert result.success is False
    assert result.requires_review is True
    assert result.tax_id is None
    assert result.errors == ("Insufficient text for extraction",)
    assert "Insufficient text" in caplog.text
    after = _sample(
        "fiscal_extraction_documents_total", profile="digital", outcome="insufficient_text"
    )
    assert after == before + 1


def test_empty_text(extractor: FieldExtractor) -> None:
    assert extractor.extract("").confidence == 0


@pytest.mark.parametrize("value", [None, b"Factura A", 42])
def test_non_string_input_rejected(extractor: FieldExtractor, value: object) -> None:
    with pytest.raises(TypeError):
        extractor.extract(value)  # type: ignore[arg-type]


def test_unknown_profile_rejected(extractor: FieldExtractor) -> None:
    with pytest.raises(ValueError, match="Unknown extraction profile"):
        extractor.extract(SCENARIO_A, profile="fax")


def test_rationale_recorded(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_A, reference_date=REFERENCE)

    assert [name for name, _ in result.rationale] == [
        "tax_id",
        "issue_date",
        "document_number",
        "total",
    ]
    assert "tax_id_label+25@1" in result.reason_for("tax_id")
    assert result.reason_for("document_number") == "pattern_0"
    assert result.reason_for("holder_type") is None


def test_result_is_immutable(extractor: FieldExtractor) -> None:
    result = extractor.extract(SCENARIO_A, reference_date=REFERENCE)

    with pytest.raises(ValidationError):
        result.confidence = 0  # type: ignore[misc]


def test_result_is_hashable(extractor: FieldExtractor) -> None:
    first = extractor.extract(SCENARIO_A, reference_date=REFERENCE)
    second = extractor.extract(SCENARIO_A, reference_date=REFERENCE)

    assert hash(first) == hash(second)
    assert len({first, second}) == 1


def test_success_metric_recorded(extractor: FieldExtractor) -> None:
    before = _sample("fiscal_extraction_documents_total", profile="digital", outcome="success")

    extractor.extract(SCENARIO_A, reference_date=REFERENCE)

    after = _sample("fiscal_extraction_documents_total", profile="digital", outcome="success")
    assert after == before + 1


def test_create_extractor_from_settings(caplog: pytest.LogCaptureFixture) -> None:
    settings = Settings(_env_file=None, default_profile="scanned", min_text_length=10)

    with caplog.at_level(logging.INFO):
        extractor = create_extractor(settings)

    assert extractor.default_profile == "scanned"
    assert extractor.min_text_length == 10
    assert "Created field extractor" in caplog.text

    result = extractor.extract("Factura C 0001-00000042", reference_date=REFERENCE)
    assert result.profile == "scanned"
    assert result.letter == "C"
    assert result.sequence_number == 42
