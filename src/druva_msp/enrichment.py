"""
Human-readable labels for coded values in Druva MSP records.

Enrichment is a pure post-processing step over records that have already
been fetched; nothing here performs I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping

from druva_msp._utils.dataframe import MILLISECOND_THRESHOLD

TENANT_STATUS = {
    0: "Creation Pending",
    1: "Ready",
    2: "Suspended",
    3: "Soft Deleted",
    4: "Being Migrated",
    5: "Updating",
}

TENANT_TYPE = {
    1: "Sandbox",
    2: "Evaluation (30-day trial)",
    3: "Commercial",
}

PRODUCT_ID = {
    1: "Hybrid Workloads",
    2: "SaaS Apps and Endpoints",
}

ADMIN_ROLES = {
    2: "MSP Admin",
    3: "Tenant Admin",
    4: "Read Only Admin",
}

ADMIN_STATUSES = {
    0: "Updating",
    1: "Ready",
}

CUSTOMER_STATUS = {
    0: "Creation Pending",
    1: "Ready",
    2: "Tenant Processing",
}

SERVICE_PLAN_STATUS = {
    0: "Updating",
    1: "Ready",
}

SYSLOG_SEVERITIES = {
    0: "Emergency (0)",
    1: "Alert (1)",
    2: "Critical (2)",
    3: "Error (3)",
    4: "Warning (4)",
    5: "Notice (5)",
    6: "Informational (6)",
    7: "Debug (7)",
}

TASK_STATUS = {
    1: "Queued",
    2: "In Progress",
    3: "Paused",
    4: "Finished",
}

TASK_OUTPUT_STATUS = {
    0: "Success",
    1: "Failed",
    -1: "Internal Use",
}

Labeler = Callable[[int], str]


def labeler(table: Mapping[int, str], kind: str = "Status") -> Labeler:
    """Return a function mapping a code to its label, or 'Unknown <kind> (code)'."""

    def label(code: int) -> str:
        return table.get(code, f"Unknown {kind} ({code})")

    return label


TENANT_FIELDS: dict[str, Labeler] = {
    "status": labeler(TENANT_STATUS),
    "tenantType": labeler(TENANT_TYPE, "Type"),
    "productID": labeler(PRODUCT_ID, "Product"),
}

CUSTOMER_FIELDS: dict[str, Labeler] = {
    "status": labeler(CUSTOMER_STATUS),
}

ADMIN_FIELDS: dict[str, Labeler] = {
    "role": labeler(ADMIN_ROLES, "Role"),
    "status": labeler(ADMIN_STATUSES),
}

SERVICE_PLAN_FIELDS: dict[str, Labeler] = {
    "status": labeler(SERVICE_PLAN_STATUS),
}

TASK_FIELDS: dict[str, Labeler] = {
    "status": labeler(TASK_STATUS),
}

TASK_DATE_FIELDS = ("created_on", "updated_on", "createdOn", "updatedOn")

task_output_label = labeler(TASK_OUTPUT_STATUS, "Output Status")

EVENT_FIELDS: dict[str, Labeler] = {
    "syslogSeverity": labeler(SYSLOG_SEVERITIES, "Severity"),
}


def enrich_record(record: dict, mappings: Mapping[str, Labeler]) -> dict:
    """
    Return a copy of record with a <field>_label key after each mapped field.

    Only integer values are labelled; key order is otherwise preserved.

    Example:
        enrich_record({"id": "t1", "status": 1}, TENANT_FIELDS)
        # {"id": "t1", "status": 1, "status_label": "Ready"}
    """
    enriched: dict = {}
    for key, value in record.items():
        enriched[key] = value
        if key in mappings and isinstance(value, int) and not isinstance(value, bool):
            enriched[f"{key}_label"] = mappings[key](value)
    return enriched


def enrich_records(records: Iterable[dict], mappings: Mapping[str, Labeler]) -> list[dict]:
    return [enrich_record(record, mappings) for record in records]


def timestamp_to_datetime(timestamp: int | float) -> datetime:
    """Convert a Unix timestamp in seconds or milliseconds to an aware datetime."""
    if timestamp < MILLISECOND_THRESHOLD:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)


def enrich_timestamps(record: dict, fields: Iterable[str]) -> dict:
    """
    Return a copy of record with a <field>At datetime after each timestamp field.

    Non-numeric or missing fields are left alone.
    """
    fields = set(fields)
    enriched: dict = {}
    for key, value in record.items():
        enriched[key] = value
        if (
            key in fields
            and isinstance(value, (int, float))
            and not isinstance(value, bool)
        ):
            enriched[f"{key}At"] = timestamp_to_datetime(value)
    return enriched


def enrich_task(task: dict) -> dict:
    """
    Label a finished task record from /msp/v2/tasks/{id}.

    Adds status_label, a <field>At datetime for each creation/update
    timestamp, and output_status_label right after output when the output
    reports a failed flag.
    """
    enriched = enrich_timestamps(enrich_record(task, TASK_FIELDS), TASK_DATE_FIELDS)

    output = task.get("output")
    failed = output.get("failed") if isinstance(output, dict) else None
    if not isinstance(failed, int) or isinstance(failed, bool):
        return enriched

    ordered: dict = {}
    for key, value in enriched.items():
        ordered[key] = value
        if key == "output":
            ordered["output_status_label"] = task_output_label(failed)
    return ordered
