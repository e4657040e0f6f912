"""Evaluation harness for fiscal field extraction.

Runs the extractor on a gold dataset and computes field-level metrics.

Gold file format (JSON list):
    [
      {
        "text": "...document text...",
        "profile": "digital",
        "reference_date": "2024-02-01",
        "expected": {"tax_id": "30-71057829-6", "issue_date": "2024-01-15", ...}
      }
    ]

``profile`` and ``reference_date`` are optional. ``expected`` may hold any
subset of the evaluated fields.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from fiscal.extraction.extractor import FieldExtractor, create_extractor
from fiscal.identifiers.cuit import normalize
from fiscal.shared.config import get_settings
from pipeline.eval.metrics import evaluate_extraction, result_to_fields

logger = logging.getLogger(__name__)


@dataclass
class GoldSample:
    """One gold document."""

    text: str
    profile: str | None
    reference_date: date | None
    expected: dict[str, Any]


def _parse_expected(raw: dict[str, Any]) -> dict[str, Any]:
    expected = dict(raw)
    if expected.get("tax_id"):
        expected["tax_id"] = normalize(expected["tax_id"])
    if expected.get("issue_date"):
        expected["issue_date"] = date.fromisoformat(expected["issue_date"])
    if expected.get("total") is not None:
        expected["total"] = Decimal(str(expected["total"]))
    return expected


def load_gold_dataset(gold_file: Path) -> list[GoldSample]:
    """Load gold dataset from JSON file.

    Args:
        gold_file: Path to gold dataset JSON

    Returns:
        Parsed gold samples
    """
    with open(gold_file, encoding="utf-8") as f:
        data = json.load(f)

    samples = []
    for item in data:
        reference = item.get("reference_date")
        samples.append(
            GoldSample(
                text=item["text"],
                profile=item.get("profile"),
                reference_date=date.fromisoformat(reference) if reference else None,
                expected=_parse_expected(item["expected"]),
            )
        )
    logger.info(f"Loaded {len(samples)} gold samples from {gold_file}")
    return samples


def run_evaluation(gold_file: Path, extractor: FieldExtractor | None = None) -> dict[str, Any]:
    """Run evaluation on gold dataset.

    Args:
        gold_file: Path to gold dataset JSON file
        extractor: Extractor under test (defaults to one built from settings)

    Returns:
        Evaluation results dict
    """
    extractor = extractor or create_extractor(get_settings())
    samples = load_gold_dataset(gold_file)

    expected_list = []
    predicted_list = []
    for sample in samples:
        result = extractor.extract(
            sample.text, profile=sample.profile, reference_date=sample.reference_date
        )
        predicted_list.append(result_to_fields(result))
        expected_list.append(sample.expected)

    report = evaluate_extraction(expected_list, predicted_list)

    return {
        "total_samples": report.total_samples,
        "macro_f1": round(report.macro_f1, 4),
        "exact_document_accuracy": round(report.exact_document_accuracy, 4),
        "field_metrics": {
            field: {
                "precision": round(metrics.precision, 4),
                "recall": round(metrics.recall, 4),
                "f1": round(metrics.f1, 4),
                "support": metrics.support,
            }
            for field, metrics in report.field_metrics.items()
        },
    }


if __name__ == "__main__":
    import sys

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    gold_file = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data/gold/fiscal_documents.json")
    results = run_evaluation(gold_file, create_extractor(settings))

    print("\n" + "=" * 60)
    print("FISCAL FIELD EXTRACTION EVALUATION RESULTS")
    print("=" * 60)
    print(f"\nTotal Samples: {results['total_samples']}")
    print(f"Macro F1 Score: {results['macro_f1']:.1%}")
    print(f"Exact Document Accuracy: {results['exact_document_accuracy']:.1%}\n")

    print("Per-Field Metrics:")
    print("-" * 60)
    print(f"{'Field':<20} {'Precision':<12} {'Recall':<12} {'F1':<12}")
    print("-" * 60)

    for field, metrics in results["field_metrics"].items():
        print(
            f"{field:<20} {metrics['precision']:<12.1%} "
            f"{metrics['recall']:<12.1%} {metrics['f1']:<12.1%}"
        )

    print("=" * 60)
