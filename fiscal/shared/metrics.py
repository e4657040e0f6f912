"""Prometheus metrics for extraction and reconciliation.

Exposes key metrics for monitoring:
- Extraction outcomes and confidence by profile
- Required fields that stayed empty
- Reconciliation verdicts and catalog anomalies

Metric names follow the Prometheus naming conventions:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Extraction metrics
extraction_documents_total = Counter(
    "fiscal_extraction_documents_total",
    "Total documents run through field extraction",
    ["profile", "outcome"],  # success, low_confidence, insufficient_text
)

extraction_confidence = Histogram(
    "fiscal_extraction_confidence",
    "Distribution of extraction confidence scores (0-100)",
    ["profile"],
    buckets=(10, 20, 30, 40, 50, 60, 70, 80, 90, 100),
)

extraction_missing_fields_total = Counter(
    "fiscal_extraction_missing_fields_total",
    "Required fields that could not be extracted",
    ["field"],
)

# Reconciliation metrics
reconciliation_verdicts_total = Counter(
    "fiscal_reconciliation_verdicts_total",
    "Reconciliation verdicts",
    ["verdict"],  # matched, suggested, manual_review, no_match
)

reconciliation_anomalies_total = Counter(
    "fiscal_reconciliation_anomalies_total",
    "Catalog anomalies detected during reconciliation",
    ["kind"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
