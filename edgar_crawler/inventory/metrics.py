"""Prometheus metrics for the filing inventory."""

from __future__ import annotations

from prometheus_client import Counter

RECORDS_REGISTERED_TOTAL = Counter(
    "edgar_inventory_records_registered_total",
    "Inventory registrations grouped by outcome (inserted or reset)",
    ["backend", "outcome"],
)

RECORDS_FINALIZED_TOTAL = Counter(
    "edgar_inventory_records_finalized_total",
    "Records moved to a terminal state",
    ["backend", "result"],
)

INVENTORY_ERRORS_TOTAL = Counter(
    "edgar_inventory_errors_total",
    "Inventory backend failures grouped by operation",
    ["backend", "operation"],
)
