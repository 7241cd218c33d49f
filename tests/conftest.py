import re
from datetime import date

import pytest


TODAY = date(2024, 3, 15)

EMPLOYEES = [
    {"emp_id": 1, "first_name": "สมชาย", "last_name": "ใจดี", "department": "IT", "position": "Software Developer", "hire_date": "2022-01-15", "salary": 45000, "status": "active"},
    {"emp_id": 2, "first_name": "สมหญิง", "last_name": "รักงาน", "department": "HR", "position": "HR Manager", "hire_date": "2021-03-10", "salary": 55000, "status": "active"},
    {"emp_id": 3, "first_name": "ธนากร", "last_name": "เก่งมาก", "department": "IT", "position": "System Analyst", "hire_date": "2022-06-01", "salary": 48000, "status": "active"},
    {"emp_id": 4, "first_name": "นิภา", "last_name": "สุขใจ", "department": "Sales", "position": "Sales Executive", "hire_date": "2021-09-20", "salary": 35000, "status": "active"},
    {"emp_id": 5, "first_name": "วิทยา", "last_name": "ชาญฉลาด", "department": "Marketing", "position": "Marketing Specialist", "hire_date": "2022-02-28", "salary": 40000, "status": "active"},
    {"emp_id": 8, "first_name": "กฤษณ์", "last_name": "พัฒนา", "department": "IT", "position": "Network Administrator", "hire_date": "2021-08-15", "salary": 46000, "status": "active"},
    {"emp_id": 9, "first_name": "มาลี", "last_name": "ขยัน", "department": "Sales", "position": "Sales Manager", "hire_date": "2020-05-12", "salary": 52000, "status": "active"},
    {"emp_id": 12, "first_name": "รัตนา", "last_name": "ละเอียด", "department": "IT", "position": "Database Administrator", "hire_date": "2022-04-18", "salary": 47000, "status": "active"},
    {"emp_id": 13, "first_name": "สมเกียรติ", "last_name": "ซื่อสัตย์", "department": "Sales", "position": "Sales Representative", "hire_date": "2023-02-14", "salary": 30000, "status": "resigned"},
]

ATTENDANCE = [
    {"attendance_id": 1, "emp_id": 1, "date": "2024-03-13", "total_hours": 8.0, "status": "present"},
    {"attendance_id": 2, "emp_id": 1, "date": "2024-03-14", "total_hours": 7.75, "status": "late"},
    {"attendance_id": 3, "emp_id": 2, "date": "2024-03-14", "total_hours": 0, "status": "absent"},
    {"attendance_id": 4, "emp_id": 3, "date": "2024-03-14", "total_hours": 8.5, "status": "present"},
    {"attendance_id": 5, "emp_id": 4, "date": "2024-03-14", "total_hours": 7.5, "status": "late"},
    {"attendance_id": 6, "emp_id": 1, "date": "2024-02-28", "total_hours": 8.0, "status": "present"},
]

LEAVE_REQUESTS = [
    {"leave_id": 1, "emp_id": 1, "leave_type": "ลาป่วย", "start_date": "2024-03-04", "end_date": "2024-03-05", "days": 2, "status": "approved"},
    {"leave_id": 2, "emp_id": 4, "leave_type": "ลาพักร้อน", "start_date": "2024-02-12", "end_date": "2024-02-16", "days": 5, "status": "approved"},
    {"leave_id": 3, "emp_id": 5, "leave_type": "ลากิจ", "start_date": "2024-03-20", "end_date": "2024-03-20", "days": 1, "status": "pending"},
]


# -----------------------------------------------------------------------------
# In-memory stand-in for the supabase-py client
# -----------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, data):
        self.data = data


def _num(value):
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def _comparable(left, right):
    if isinstance(left, (int, float)) or isinstance(right, (int, float)):
        return _num(left), _num(right)
    return str(left), str(right)


def _eq(left, right):
    a, b = _comparable(left, right)
    return a == b


def _like(value, pattern):
    regex = "".join(".*" if ch in "%*" else re.escape(ch) for ch in str(pattern))
    return value is not None and re.fullmatch(regex, str(value), re.IGNORECASE | re.DOTALL) is not None


def _compare(op, left, right):
    if left is None:
        return False
    a, b = _comparable(left, right)
    return {"gt": a > b, "gte": a >= b, "lt": a < b, "lte": a <= b}[op]


def _split_top_level(text):
    parts, depth, quoted, current = [], 0, False, ""
    for ch in text:
        if ch == '"':
            quoted = not quoted
        elif not quoted and ch == "(":
            depth += 1
        elif not quoted and ch == ")":
            depth -= 1
        elif not quoted and depth == 0 and ch == ",":
            parts.append(current)
            current = ""
            continue
        current += ch
    if current:
        parts.append(current)
    return parts


def _unquote(value):
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1].replace('\\"', '"')
    return value


def _parse_filter(text):
    text = text.strip()
    if text.startswith("and(") and text.endswith(")"):
        inner = [_parse_filter(p) for p in _split_top_level(text[4:-1])]
        return lambda row: all(p(row) for p in inner)
    column, op, value = text.split(".", 2)
    if op == "in":
        values = [_unquote(v) for v in _split_top_level(value.strip()[1:-1])]
        return lambda row: any(_eq(row.get(column), v) for v in values)
    value = _unquote(value)
    if op == "eq":
        return lambda row: _eq(row.get(column), value)
    if op == "neq":
        return lambda row: not _eq(row.get(column), value)
    if op == "ilike":
        return lambda row: _like(row.get(column), value)
    return lambda row: _compare(op, row.get(column), value)


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.columns = "*"
        self.filters = []
        self.orders = []
        self.row_limit = None
        self.calls = []

    def _filter(self, name, column, value, predicate):
        self.calls.append((name, column, value))
        self.filters.append(predicate)
        return self

    def select(self, columns="*", **kwargs):
        self.columns = columns
        self.calls.append(("select", columns))
        return self

    def eq(self, column, value):
        return self._filter("eq", column, value, lambda r: _eq(r.get(column), value))

    def neq(self, column, value):
        return self._filter("neq", column, value, lambda r: not _eq(r.get(column), value))

    def gt(self, column, value):
        return self._filter("gt", column, value, lambda r: _compare("gt", r.get(column), value))

    def gte(self, column, value):
        return self._filter("gte", column, value, lambda r: _compare("gte", r.get(column), value))

    def lt(self, column, value):
        return self._filter("lt", column, value, lambda r: _compare("lt", r.get(column), value))

    def lte(self, column, value):
        return self._filter("lte", column, value, lambda r: _compare("lte", r.get(column), value))

    def in_(self, column, values):
        values = list(values)
        return self._filter("in", column, values, lambda r: any(_eq(r.get(column), v) for v in values))

    def ilike(self, column, pattern):
        return self._filter("ilike", column, pattern, lambda r: _like(r.get(column), pattern))

    def or_(self, filters):
        predicates = [_parse_filter(p) for p in _split_top_level(filters)]
        self.calls.append(("or", filters))
        self.filters.append(lambda r: any(p(r) for p in predicates))
        return self

    def order(self, column, desc=False, **kwargs):
        self.calls.append(("order", column, desc))
        self.orders.append((column, desc))
        return self

    def limit(self, size):
        self.calls.append(("limit", size))
        self.row_limit = size
        return self

    def execute(self):
        if self.db.error:
            raise Exception(self.db.error)
        rows = [dict(r) for r in self.db.tables.get(self.table_name, []) if all(f(r) for f in self.filters)]
        for column, desc in reversed(self.orders):
            rows.sort(
                key=lambda r: (r.get(column) is not None, _num(r.get(column)) if r.get(column) is not None else 0),
                reverse=desc,
            )
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        parts = [p.strip() for p in self.columns.split(",")]
        if parts != ["*"] and not any("(" in p for p in parts):
            names = [(p.split(":")[0], p.split(":")[-1]) for p in parts]
            rows = [{alias: r.get(column) for alias, column in names} for r in rows]
        return FakeResponse(rows)


class FakeRPC:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def execute(self):
        if self.db.error:
            raise Exception(self.db.error)
        return FakeResponse(self.db.rpc_results.get(self.name))


class FakeSupabase:
    def __init__(self, tables=None, rpc_results=None):
        self.tables = tables or {}
        self.rpc_results = rpc_results or {}
        self.queries = []
        self.rpc_calls = []
        self.error = None

    def table(self, name):
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def rpc(self, name, params=None):
        self.rpc_calls.append((name, params or {}))
        return FakeRPC(self, name)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def fake_db():
    return FakeSupabase(
        tables={
            "employees": [dict(r) for r in EMPLOYEES],
            "attendance": [dict(r) for r in ATTENDANCE],
            "leave_requests": [dict(r) for r in LEAVE_REQUESTS],
            "payroll": [],
            "benefits": [],
        },
        rpc_results={
            "get_average_salary": [{"avg_salary": 44222.22}],
            "get_department_highest_avg_salary": [{"department": "HR", "avg_salary": 55000}],
            "get_total_work_hours": [{"total_hours": 15.75}],
            "get_most_absent_employee": [{"emp_id": 2, "absent_count": 1}],
            "get_most_leave_employee": [{"emp_id": 4, "total_leave_days": 5}],
        },
    )


@pytest.fixture
def use_fake_db(fake_db, monkeypatch):
    """Route every get_client() call to the fake database."""
    import hr_repository
    import name_resolver
    import query_executor

    for module in (hr_repository, name_resolver, query_executor):
        monkeypatch.setattr(module, "get_client", lambda: fake_db)
    return fake_db
