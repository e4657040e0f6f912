"""Unit tests for the document-type table and classifier."""

import logging

import pytest

from fiscal.doctypes.classifier import DocumentTypeClassifier
from fiscal.doctypes.table import (
    DocumentKind,
    DocumentTypeCode,
    DocumentTypeTable,
    TableData,
)


@pytest.fixture(scope="module")
def table() -> DocumentTypeTable:
    return DocumentTypeTable.load()


@pytest.fixture(scope="module")
def classifier(table: DocumentTypeTable) -> DocumentTypeClassifier:
    return DocumentTypeClassifier(table)


class TestDocumentTypeTable:
    """Tests for the shipped code table."""

    def test_shipped_table_loads(self, table: DocumentTypeTable) -> None:
        assert table.version == "2024.1"
        assert len(table) == 15

    @pytest.mark.parametrize(
        "code,letter,kind,short_code",
        [
            (1, "A", DocumentKind.INVOICE, "FAC"),
            (3, "A", DocumentKind.CREDIT_NOTE, "NCR"),
            (7, "B", DocumentKind.DEBIT_NOTE, "NDB"),
            (11, "C", DocumentKind.INVOICE, "FAC"),
            (19, "E", DocumentKind.INVOICE, "FAC"),
            (51, "M", DocumentKind.INVOICE, "FAC"),
        ],
    )
    def test_lookup(
        self,
        table: DocumentTypeTable,
        code: int,
        letter: str,
        kind: DocumentKind,
        short_code: str,
    ) -> None:
        entry = table.lookup(code)

        assert entry is not None
        assert entry.letter == letter
        assert entry.kind == kind
        assert entry.short_code == short_code

    def test_electronic_codes_fold_onto_base(self, table: DocumentTypeTable) -> None:
        entry = table.lookup(211)

        assert entry is not None
        assert entry.code == 211
        assert entry.letter == "C"
        assert entry.kind == DocumentKind.INVOICE
        assert entry.description == "Factura C (Electrónica)"

    def test_unknown_codes(self, table: DocumentTypeTable) -> None:
        assert table.lookup(999) is None
        assert table.lookup(200) is None
        assert table.lookup(250) is None  # in range but no base code 50
        assert 999 not in table
        assert 1 in table

    def test_reverse_lookup(self, table: DocumentTypeTable) -> None:
        assert table.reverse("B", DocumentKind.CREDIT_NOTE).code == 8
        assert table.reverse("c", DocumentKind.INVOICE).code == 11

    def test_duplicate_codes_rejected(self) -> None:
        entry = DocumentTypeCode(
            code=1, letter="A", kind=DocumentKind.INVOICE, short_code="FAC", description="Factura A"
        )
        with pytest.raises(ValueError, match="Duplicate document-type code 1"):
            DocumentTypeTable(TableData(version="test", types=[entry, entry]))

    def test_load_alternate_table(self, tmp_path) -> None:
        """New codes are a data change only."""
        path = tmp_path / "codes.json"
        path.write_text(
            '{"version": "custom", "types": ['
            '{"code": 81, "letter": "A", "kind": "INVOICE", "short_code": "TIQ",'
            ' "description": "Tique Factura A"}]}',
            encoding="utf-8",
        )

        custom = DocumentTypeTable.load(path)

        assert custom.version == "custom"
        assert custom.lookup(81).description == "Tique Factura A"
        assert custom.lookup(1) is None


class TestDocumentTypeClassifier:
    """Tests for code and text classification."""

    def test_from_code(self, classifier: DocumentTypeClassifier) -> None:
        assert classifier.from_code(6).letter == "B"
        assert classifier.from_code("011").code == 11
        assert classifier.from_code(" 01 ").code == 1
        assert classifier.from_code("abc") is None
        assert classifier.from_code(500) is None

    @pytest.mark.parametrize(
        "text,code",
        [
            ("FACTURA C\nOriginal", 11),
            ("Nota de Crédito B", 8),
            ("NOTA DE DEBITO A", 2),
            ("NC A 0001-00000012", 3),
            ("Comprobante B - Original", 6),
            ("AFACTURA ORIGINAL", 1),
        ],
    )
    def test_from_text(self, classifier: DocumentTypeClassifier, text: str, code: int) -> None:
        found = classifier.from_text(text)

        assert found is not None
        assert found.code == code

    def test_from_text_no_match(self, classifier: DocumentTypeClassifier) -> None:
        assert classifier.from_text("Recibo de sueldo") is None

    def test_numeric_code_wins_over_conflicting_letter(
        self, classifier: DocumentTypeClassifier
    ) -> None:
        text = "11 - Factura C\nRazón social: Kiosco Central\nA\nDomicilio: Av. Siempre Viva 742"

        match = classifier.extract_with_fallback(text)

        assert match is not None
        assert match.letter == "C"
        assert match.method == "CODE"

    def test_code_wins_and_conflict_logged(
        self, classifier: DocumentTypeClassifier, caplog: pytest.LogCaptureFixture
    ) -> None:
        text = "Código: 01\nFactura B\n"

        with caplog.at_level(logging.WARNING):
            match = classifier.extract_with_fallback(text)

        assert match.code == 1
        assert match.letter == "A"
        assert "numeric code wins" in caplog.text

    def test_letter_above_code_layout(
        self, classifier: DocumentTypeClassifier, caplog: pytest.LogCaptureFixture
    ) -> None:
        assert classifier.extract_with_fallback("B\nCódigo: 06\n").code == 6

        with caplog.at_level(logging.WARNING):
            match = classifier.extract_with_fallback("A\nCódigo: 06\n")

        assert match.letter == "B"
        assert "disagrees" in caplog.text

    def test_electronic_code(self, classifier: DocumentTypeClassifier) -> None:
        match = classifier.extract_with_fallback("Cod. 201\nFACTURA DE CREDITO ELECTRONICA")

        assert match.code == 201
        assert match.letter == "A"
        assert match.kind == DocumentKind.INVOICE

    def test_text_fallback(self, classifier: DocumentTypeClassifier) -> None:
        match = classifier.extract_with_fallback("Nota de Crédito C\nSin código impreso")

        assert match.method == "TEXT"
        assert match.code == 13

    def test_nothing_found(self, classifier: DocumentTypeClassifier) -> None:
        assert classifier.extract_with_fallback("Recibo de sueldo") is None

    def test_injected_table(self) -> None:
        custom = DocumentTypeTable(
            TableData(
                version="test",
                types=[
                    DocumentTypeCode(
                        code=99,
                        letter="M",
                        kind=DocumentKind.INVOICE,
                        short_code="FAC",
                        description="Factura M especial",
                    )
                ],
            )
        )
        classifier = DocumentTypeClassifier(custom)

        assert classifier.from_code(99).description == "Factura M especial"
        assert classifier.from_code(1) is None
        assert classifier.from_text("Factura M").code == 99
