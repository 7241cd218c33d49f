# query_model.py
"""
Intermediate Query model.

The structured request produced by the translator and consumed once by the
executor. Field names follow the camelCase JSON the language model emits
(conditionLogic, orderBy) while Python code uses snake_case attributes.
"""
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


TABLE_COLUMNS: dict[str, list[str]] = {
    "employees": [
        "emp_id", "first_name", "last_name", "department", "position",
        "hire_date", "salary", "phone", "email", "status",
    ],
    "attendance": [
        "attendance_id", "emp_id", "date", "check_in", "check_out",
        "total_hours", "status", "notes",
    ],
    "leave_requests": [
        "leave_id", "emp_id", "leave_type", "start_date", "end_date", "days",
        "reason", "status", "applied_date", "approved_by", "approved_date",
    ],
    "payroll": [
        "payroll_id", "emp_id", "pay_period", "basic_salary", "overtime_pay",
        "bonus", "allowances", "deductions", "net_pay", "pay_date",
    ],
    "benefits": [
        "benefit_id", "emp_id", "social_security", "health_insurance",
        "life_insurance", "provident_fund", "annual_leave_days",
        "sick_leave_days", "personal_leave_days", "effective_date",
    ],
}

DATE_COLUMNS = {
    "hire_date", "date", "start_date", "end_date", "applied_date",
    "approved_date", "pay_date", "effective_date",
}

OPERATORS = ("=", "!=", "<>", ">", ">=", "<", "<=", "IN", "LIKE", "BETWEEN")


class QueryType(str, Enum):
    SELECT = "SELECT"
    COUNT = "COUNT"
    AGGREGATE = "AGGREGATE"


class ConditionLogic(str, Enum):
    AND = "AND"
    OR = "OR"


class AggregateOperation(str, Enum):
    """Named analytic operations backed by server-side procedures."""
    AVERAGE_SALARY = "average_salary"
    DEPARTMENT_HIGHEST_AVG_SALARY = "department_highest_avg_salary"
    TOTAL_WORK_HOURS = "total_work_hours"
    MOST_ABSENT_EMPLOYEE = "most_absent_employee"
    MOST_LEAVE_EMPLOYEE = "most_leave_employee"


class Condition(BaseModel):
    operator: str = "="
    value: Any = None

    @field_validator("operator", mode="before")
    @classmethod
    def _upper_operator(cls, v):
        if v is None:
            return "="
        return str(v).strip().upper()

    @model_validator(mode="after")
    def _coerce_in_value(self):
        if self.operator == "IN" and not isinstance(self.value, (list, tuple)):
            if isinstance(self.value, str) and self.value.strip().upper().startswith("(SELECT"):
                return self
            self.value = [self.value]
        return self

    @property
    def is_subquery(self) -> bool:
        return isinstance(self.value, str) and self.value.strip().upper().startswith("(SELECT")


class OrderBy(BaseModel):
    column: str
    direction: str = "asc"

    @field_validator("direction", mode="before")
    @classmethod
    def _lower_direction(cls, v):
        v = str(v or "asc").strip().lower()
        if v not in ("asc", "desc"):
            raise ValueError(f"direction must be asc or desc, got {v!r}")
        return v

    @property
    def ascending(self) -> bool:
        return self.direction == "asc"


class IntermediateQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: QueryType = QueryType.SELECT
    table: str
    columns: list[str] = Field(default_factory=list)
    conditions: dict[str, Condition] = Field(default_factory=dict)
    condition_logic: ConditionLogic = Field(ConditionLogic.AND, alias="conditionLogic")
    order_by: list[OrderBy] = Field(default_factory=list, alias="orderBy")
    limit: int | None = Field(None, gt=0)
    operation: AggregateOperation | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    # emp_id restriction ANDed with an OR condition group; set by access scoping
    scope_emp_id: int | None = Field(None, alias="scopeEmpId")

    @model_validator(mode="before")
    @classmethod
    def _normalize_raw(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # the model sometimes emits explicit nulls for optional parts
        for key in ("columns", "conditions", "orderBy", "order_by", "params"):
            if key in data and data[key] is None:
                del data[key]
        for key in ("type", "conditionLogic", "condition_logic"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip().upper()
        if isinstance(data.get("operation"), str):
            data["operation"] = data["operation"].strip().lower() or None
        conditions = data.get("conditions")
        if isinstance(conditions, dict):
            data["conditions"] = {
                column: _coerce_condition(value) for column, value in conditions.items()
            }
        return data

    @field_validator("table", mode="before")
    @classmethod
    def _known_table(cls, v):
        table = str(v).strip().lower()
        if table not in TABLE_COLUMNS:
            raise ValueError(f"unknown table {v!r}")
        return table

    @model_validator(mode="after")
    def _known_condition_columns(self):
        known = TABLE_COLUMNS[self.table]
        unknown = [c for c in self.conditions if c not in known]
        if unknown:
            raise ValueError(f"unknown columns for {self.table}: {', '.join(unknown)}")
        return self

    def with_condition(self, column: str, condition: Condition) -> "IntermediateQuery":
        conditions = dict(self.conditions)
        conditions[column] = condition
        return self.model_copy(update={"conditions": conditions})

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready structure using the wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _coerce_condition(value: Any) -> Any:
    """Accept bare values ({"department": "IT"}) alongside {operator, value}."""
    if isinstance(value, dict) and ("operator" in value or "value" in value):
        return value
    if isinstance(value, Condition):
        return value
    if isinstance(value, list):
        return {"operator": "IN", "value": value}
    if isinstance(value, str) and "%" in value:
        return {"operator": "LIKE", "value": value}
    return {"operator": "=", "value": value}


# -----------------------------------------------------------------------------
# Column expressions
# -----------------------------------------------------------------------------

_COLUMN_RE = re.compile(
    r"^\s*(?:(?P<func>[A-Za-z_]+)\s*\(\s*(?P<arg>\*|[\w.]+)\s*\)|(?P<col>[\w.*]+))"
    r"(?:\s+(?:AS\s+)?(?P<alias>\w+))?\s*$",
    re.IGNORECASE,
)


class ColumnSpec(BaseModel):
    function: str | None = None
    argument: str
    alias: str | None = None

    @property
    def is_aggregate(self) -> bool:
        return self.function is not None

    @property
    def output_name(self) -> str:
        if self.alias:
            return self.alias
        if self.function:
            if self.argument == "*":
                return self.function.lower()
            return f"{self.function.lower()}_{self.argument}"
        return self.argument


def parse_column(expression: str) -> ColumnSpec:
    """Parse "salary", "AVG(salary)" or "COUNT(*) AS absent_count"."""
    match = _COLUMN_RE.match(expression or "")
    if not match:
        raise ValueError(f"unsupported column expression: {expression!r}")
    if match.group("func"):
        return ColumnSpec(
            function=match.group("func").upper(),
            argument=match.group("arg"),
            alias=match.group("alias"),
        )
    return ColumnSpec(argument=match.group("col"), alias=match.group("alias"))
