"""Prometheus metrics for the Cert Backup Operator."""

from prometheus_client import Counter, Histogram

# Discovery metrics
certificates_observed_total = Counter(
    "cert_backup_operator_certificates_observed_total",
    "Total number of certificates observed by the operator",
    ["origin", "result"],
)

watch_events_total = Counter(
    "cert_backup_operator_watch_events_total",
    "Total number of watch events received",
    ["event_type"],
)

# Backup metrics
backup_files_total = Counter(
    "cert_backup_operator_backup_files_total",
    "Total number of backup file operations",
    ["kind", "result"],
)

process_duration_seconds = Histogram(
    "cert_backup_operator_process_duration_seconds",
    "Duration of the readiness, resolve and write pipeline per certificate in seconds",
    ["origin"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# API call metrics
api_call_total = Counter(
    "cert_backup_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "cert_backup_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# Error metrics
error_total = Counter(
    "cert_backup_operator_error_total",
    "Total number of errors",
    ["stage", "error_type"],
)
