# hr_repository.py
"""
Direct reads against the HR tables: display-name enrichment for result rows,
plus a couple of fixed reports.
"""
import logging
from collections import Counter
from typing import Any, Iterable

from date_normalizer import normalize
from errors import BackendExecutionError
from supabase_client import get_client

logger = logging.getLogger(__name__)


def fetch_name_map(ids: Iterable[int], client=None) -> dict[int, str]:
    """
    Given a set of employee IDs, return a map emp_id -> "first_name last_name".
    Enrichment is optional: a failed lookup yields an empty map.
    """
    ids = sorted({i for i in ids if i is not None})
    if not ids:
        return {}
    client = client or get_client()
    try:
        resp = (
            client.table("employees")
            .select("emp_id, first_name, last_name")
            .in_("emp_id", ids)
            .execute()
        )
    except Exception as e:
        logger.warning("Employee name lookup failed, answering without names: %s", e)
        return {}
    rows = resp.data or []
    return {
        r["emp_id"]: " ".join(p for p in (r.get("first_name"), r.get("last_name")) if p)
        for r in rows
    }


def annotate_with_names(rows: list[Any], name_map: dict[int, str]) -> list[Any]:
    """
    Add an employee_name field to result rows carrying a known emp_id.
    """
    annotated = []
    for row in rows:
        if not isinstance(row, dict):
            annotated.append(row)
            continue
        r = dict(row)
        emp_id = r.get("emp_id")
        if emp_id in name_map and name_map[emp_id] and "employee_name" not in r:
            r["employee_name"] = name_map[emp_id]
        annotated.append(r)
    return annotated


def enrich_with_names(rows: list[Any], client=None) -> list[Any]:
    ids = {row.get("emp_id") for row in rows if isinstance(row, dict)}
    if not ids - {None}:
        return rows
    return annotate_with_names(rows, fetch_name_map(ids, client))


def get_attendance_by_employee(
    emp_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    client=None,
) -> list[dict[str, Any]]:
    """Attendance rows of one employee, newest first."""
    client = client or get_client()
    query = (
        client.table("attendance")
        .select("*")
        .eq("emp_id", emp_id)
        .order("date", desc=True)
    )
    if start_date:
        query = query.gte("date", normalize(start_date))
    if end_date:
        query = query.lte("date", normalize(end_date, end_of_period=True))
    try:
        return query.execute().data or []
    except Exception as e:
        logger.error("Attendance lookup for employee %s failed: %s", emp_id, e)
        raise BackendExecutionError(f"Attendance lookup failed: {e}") from e


def get_department_stats(client=None) -> list[dict[str, Any]]:
    """Head-count per department."""
    client = client or get_client()
    try:
        rows = client.table("employees").select("department").execute().data or []
    except Exception as e:
        logger.error("Department stats lookup failed: %s", e)
        raise BackendExecutionError(f"Department stats lookup failed: {e}") from e
    counts = Counter(r.get("department") for r in rows)
    return [{"department": d, "count": n} for d, n in counts.items()]
