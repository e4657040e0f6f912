"""Evaluation metrics for fiscal field extraction.

Computes precision, recall, and F1 scores for each extracted field, plus
the share of documents where every evaluated field is right.
Based on standard information extraction evaluation methodologies.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from fiscal.extraction.schema import ExtractionResult

EVALUATED_FIELDS = (
    "tax_id",
    "issue_date",
    "letter",
    "document_code",
    "point_of_sale",
    "sequence_number",
    "total",
)


@dataclass
class FieldMetrics:
    """Metrics for a single field."""

    precision: float
    recall: float
    f1: float
    support: int  # Samples with an expected value


@dataclass
class EvaluationReport:
    """Complete evaluation report."""

    field_metrics: dict[str, FieldMetrics]
    macro_f1: float
    exact_document_accuracy: float
    total_samples: int


def result_to_fields(result: ExtractionResult) -> dict[str, Any]:
    """Flatten an extraction result into the evaluated field names."""
    return {
        "tax_id": result.tax_id,
        "issue_date": result.issue_date,
        "letter": result.letter,
        "document_code": result.document_type.code if result.document_type else None,
        "point_of_sale": result.point_of_sale,
        "sequence_number": result.sequence_number,
        "total": result.total,
    }


def calculate_field_match(expected: Any, predicted: Any) -> bool:
    """Check if extracted field matches expected value.

    Args:
        expected: Ground truth value
        predicted: Extracted value

    Returns:
        True if values match (with tolerance for numeric fields)
    """
    # Both None
    if expected is None and predicted is None:
        return True

    # One is None
    if expected is None or predicted is None:
        return False

    # Numeric comparison (with small tolerance for amounts)
    if isinstance(expected, int | float | Decimal) and isinstance(predicted, int | float | Decimal):
        return abs(Decimal(str(expected)) - Decimal(str(predicted))) < Decimal("0.01")

    # Date comparison - handle string vs date object
    if isinstance(expected, date) or isinstance(predicted, date):
        exp_str = expected.isoformat() if isinstance(expected, date) else str(expected).strip()
        pred_str = predicted.isoformat() if isinstance(predicted, date) else str(predicted).strip()
        return exp_str == pred_str

    # String comparison (case-insensitive, collapsed whitespace)
    if isinstance(expected, str) and isinstance(predicted, str):
        return " ".join(expected.lower().split()) == " ".join(predicted.lower().split())

    # Direct comparison for other types
    return bool(expected == predicted)


def evaluate_extraction(
    expected: list[Mapping[str, Any]],
    predicted: list[Mapping[str, Any]],
    fields: tuple[str, ...] = EVALUATED_FIELDS,
) -> EvaluationReport:
    """Evaluate extraction accuracy against ground truth.

    Only fields present in a gold item are evaluated for that item, so a
    gold set may leave out fields it has no truth for.

    Args:
        expected: Ground truth field values per document
        predicted: Extracted field values per document
        fields: Field names to evaluate

    Returns:
        Evaluation report with per-field and overall metrics

    Raises:
        ValueError: If the lists have different lengths
    """
    if len(expected) != len(predicted):
        raise ValueError("Expected and predicted lists must have same length")

    field_metrics: dict[str, FieldMetrics] = {}

    for field in fields:
        true_positives = 0
        false_positives = 0
        false_negatives = 0
        support = 0

        for exp, pred in zip(expected, predicted, strict=True):
            if field not in exp:
                continue
            exp_value = exp[field]
            pred_value = pred.get(field)
            if exp_value is not None:
                support += 1

            # True Positive: both have value and they match
            if exp_value is not None and pred_value is not None:
                if calculate_field_match(exp_value, pred_value):
                    true_positives += 1
                else:
                    false_positives += 1  # Predicted wrong value
                    false_negatives += 1  # Missed correct value

            # False Negative: expected value but got None
            elif exp_value is not None and pred_value is None:
                false_negatives += 1

            # False Positive: predicted value but should be None
            elif exp_value is None and pred_value is not None:
                false_positives += 1

        precision = (
            true_positives / (true_positives + false_positives)
            if (true_positives + false_positives) > 0
            else 0.0
        )
        recall = (
            true_positives / (true_positives + false_negatives)
            if (true_positives + false_negatives) > 0
            else 0.0
        )
        f1 = 2 * (precision * recall) / (precision + recall) if (precision + recall) > 0 else 0.0

        field_metrics[field] = FieldMetrics(
            precision=precision,
            recall=recall,
            f1=f1,
            support=support,
        )

    macro_f1 = sum(m.f1 for m in field_metrics.values()) / len(field_metrics) if fields else 0.0

    exact_documents = sum(
        1
        for exp, pred in zip(expected, predicted, strict=True)
        if all(calculate_field_match(exp[f], pred.get(f)) for f in fields if f in exp)
    )
    exact_document_accuracy = exact_documents / len(expected) if expected else 0.0

    return EvaluationReport(
        field_metrics=field_metrics,
        macro_f1=macro_f1,
        exact_document_accuracy=exact_document_accuracy,
        total_samples=len(expected),
    )
