"""Hard-gate eligibility filtering."""

from filtering.gates import (
    GateResult,
    apply_ingestion_gates,
    check_ingestion_gates,
    locale_gate,
    passes_user_gates,
    required_fields_gate,
    staleness_gate,
)

__all__ = [
    "GateResult",
    "apply_ingestion_gates",
    "check_ingestion_gates",
    "locale_gate",
    "passes_user_gates",
    "required_fields_gate",
    "staleness_gate",
]
