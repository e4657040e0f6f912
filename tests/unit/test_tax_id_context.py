"""Unit tests for contextual CUIT candidate ranking."""

from fiscal.identifiers.cuit import (
    DEFAULT_CONTEXT_RULES,
    ISSUER_RULES,
    RECIPIENT_RULES,
    extract_candidates_with_context,
)

FILLER = "Condición frente al IVA: Responsable Inscripto\n" * 4


def test_labeled_issuer_beats_customer_when_first() -> None:
    text = (
        "DISTRIBUIDORA DEL SUR S.A.\n"
        "CUIT: 30-71057829-6\n"
        f"{FILLER}"
        "Cliente: Juan Perez 20-12345678-6\n"
    )

    candidates = extract_candidates_with_context(text)

    assert [c.value for c in candidates] == ["30-71057829-6", "20-12345678-6"]
    assert candidates[0].score > candidates[1].score


def test_labeled_issuer_beats_customer_when_second() -> None:
    """The labeled identifier wins even when the customer one appears first."""
    text = (
        "Cliente: Juan Perez 20-12345678-6\n"
        f"{FILLER}"
        "DISTRIBUIDORA DEL SUR S.A.\n"
        "CUIT: 30-71057829-6\n"
    )

    candidates = extract_candidates_with_context(text)

    assert candidates[0].value == "30-71057829-6"
    assert candidates[0].score > candidates[1].score


def test_compact_customer_block_first() -> None:
    """Neighbouring blocks do not lend their vocabulary to each other."""
    text = (
        "Señores: JUAN PEREZ\n"
        "CUIT: 20-12345678-6\n"
        "DISTRIBUIDORA DEL SUR S.A.\n"
        "CUIT: 30-71057829-6\n"
        "Ingresos Brutos: 901-123456-7\n"
    )

    candidates = extract_candidates_with_context(text)

    assert [c.value for c in candidates] == ["30-71057829-6", "20-12345678-6"]
    issuer, customer = candidates
    assert "gross_income+15@1" in issuer.reasons
    assert not any(r.startswith("salutation") for r in issuer.reasons)
    assert "salutation-25@19" in customer.reasons
    assert not any(r.startswith("gross_income") for r in customer.reasons)


def test_compact_issuer_block_first() -> None:
    text = (
        "DISTRIBUIDORA DEL SUR S.A.\n"
        "CUIT: 30-71057829-6\n"
        "Ingresos Brutos: 901-123456-7\n"
        "Cliente: JUAN PEREZ\n"
        "CUIT: 20-12345678-6\n"
    )

    candidates = extract_candidates_with_context(text)

    assert candidates[0].value == "30-71057829-6"
    assert not any(r.startswith("customer") for r in candidates[0].reasons)


def test_rationale_records_applied_rules() -> None:
    text = f"CUIT: 30-71057829-6\n{FILLER}"

    [candidate] = extract_candidates_with_context(text)

    assert "tax_id_label+25@1" in candidate.reasons
    assert any(reason.startswith("position") for reason in candidate.reasons)


def test_invalid_identifiers_dropped() -> None:
    text = f"CUIT: 30-71057829-5\n{FILLER}"

    assert extract_candidates_with_context(text) == []


def test_repeated_identifier_deduplicated() -> None:
    """Repeats keep the first position and the best score."""
    text = f"30-71057829-6\n{FILLER}CUIT: 30-71057829-6\n"

    candidates = extract_candidates_with_context(text)

    assert len(candidates) == 1
    assert candidates[0].start == 0
    assert "tax_id_label+25@1" in candidates[0].reasons


def test_separator_styles_collapse_to_one_candidate() -> None:
    text = f"30710578296\n{FILLER}30 71057829 6\n"

    candidates = extract_candidates_with_context(text)

    assert [c.value for c in candidates] == ["30-71057829-6"]


def test_without_rules_position_decides() -> None:
    """With an empty rule table only the position bonus ranks candidates."""
    text = f"Cliente: 20-12345678-6\n{FILLER}CUIT: 30-71057829-6\n"

    candidates = extract_candidates_with_context(text, rules=())

    assert candidates[0].value == "20-12345678-6"


def test_default_rules_are_issuer_plus_recipient() -> None:
    assert DEFAULT_CONTEXT_RULES == ISSUER_RULES + RECIPIENT_RULES
    assert all(rule.delta > 0 for rule in ISSUER_RULES)
    assert all(rule.delta < 0 for rule in RECIPIENT_RULES)
