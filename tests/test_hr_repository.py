import pytest

from errors import BackendExecutionError
from hr_repository import (
    annotate_with_names,
    enrich_with_names,
    fetch_name_map,
    get_attendance_by_employee,
    get_department_stats,
)


class TestNameEnrichment:

    def test_fetch_name_map(self, fake_db):
        assert fetch_name_map({1, 4}, client=fake_db) == {1: "สมชาย ใจดี", 4: "นิภา สุขใจ"}
        assert fake_db.queries[-1].calls[1] == ("in", "emp_id", [1, 4])

    def test_no_ids_skips_lookup(self, fake_db):
        assert fetch_name_map(set(), client=fake_db) == {}
        assert fake_db.queries == []

    def test_lookup_failure_yields_empty_map(self, fake_db):
        fake_db.error = "down"
        assert fetch_name_map({1}, client=fake_db) == {}

    def test_annotate(self):
        rows = [{"emp_id": 1, "status": "late"}, {"emp_id": 99}, "raw"]
        annotated = annotate_with_names(rows, {1: "สมชาย ใจดี"})
        assert annotated == [
            {"emp_id": 1, "status": "late", "employee_name": "สมชาย ใจดี"},
            {"emp_id": 99},
            "raw",
        ]
        assert "employee_name" not in rows[0]

    def test_enrich_rows_without_emp_id(self, fake_db):
        rows = [{"avg_salary": 44000}]
        assert enrich_with_names(rows, client=fake_db) == rows
        assert fake_db.queries == []


class TestReports:

    def test_attendance_newest_first(self, fake_db):
        rows = get_attendance_by_employee(1, client=fake_db)
        assert [r["date"] for r in rows] == ["2024-03-14", "2024-03-13", "2024-02-28"]

    def test_attendance_range(self, fake_db):
        rows = get_attendance_by_employee(1, "2024-02", "2024-02", client=fake_db)
        assert [r["date"] for r in rows] == ["2024-02-28"]

    def test_department_stats(self, fake_db):
        stats = {d["department"]: d["count"] for d in get_department_stats(client=fake_db)}
        assert stats["IT"] == 4

    def test_failures_raise(self, fake_db):
        fake_db.error = "down"
        with pytest.raises(BackendExecutionError):
            get_department_stats(client=fake_db)
        with pytest.raises(BackendExecutionError):
            get_attendance_by_employee(1, client=fake_db)
