# query_executor.py
"""
Executes an IntermediateQuery against Supabase.

Three stages, in order:
    1. name subqueries in condition values are resolved to emp_id lists
    2. aggregate operations are routed to server-side procedures, either by
       the explicit `operation` name or by recognizing the query's shape
    3. everything else becomes a filtered PostgREST select built from a fixed
       operator table, so no SQL text from the model ever reaches the backend
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

import date_normalizer
import name_resolver
from errors import (
    BackendExecutionError,
    InvalidConditionError,
    UnknownOperatorError,
    UnsupportedSubqueryError,
)
from query_model import (
    AggregateOperation,
    Condition,
    ConditionLogic,
    DATE_COLUMNS,
    IntermediateQuery,
    OPERATORS,
    QueryType,
    parse_column,
)
from supabase_client import get_client

logger = logging.getLogger(__name__)

_BETWEEN_SPLIT = re.compile(r"\s+AND\s+", re.IGNORECASE)

# operator -> PostgREST filter name
_FILTERS = {
    "=": "eq",
    "!=": "neq",
    "<>": "neq",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
    "IN": "in",
    "LIKE": "ilike",
}


# -----------------------------------------------------------------------------
# Aggregate procedures
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Procedure:
    operation: AggregateOperation
    rpc: str
    table: str
    # (function, argument) per selected column, in order
    columns: tuple[tuple[str | None, str], ...]
    # procedure result field per selected column
    outputs: tuple[str, ...]
    # (column, accepted operators, required value or None)
    conditions: tuple[tuple[str, tuple[str, ...], Any], ...] = ()
    # ORDER BY the aggregate DESC LIMIT 1
    ranked: bool = False
    params: tuple[str, ...] = ()


PROCEDURES: dict[AggregateOperation, Procedure] = {
    p.operation: p for p in (
        Procedure(
            operation=AggregateOperation.AVERAGE_SALARY,
            rpc="get_average_salary",
            table="employees",
            columns=(("AVG", "salary"),),
            outputs=("avg_salary",),
        ),
        Procedure(
            operation=AggregateOperation.DEPARTMENT_HIGHEST_AVG_SALARY,
            rpc="get_department_highest_avg_salary",
            table="employees",
            columns=((None, "department"), ("AVG", "salary")),
            outputs=("department", "avg_salary"),
            ranked=True,
        ),
        Procedure(
            operation=AggregateOperation.TOTAL_WORK_HOURS,
            rpc="get_total_work_hours",
            table="attendance",
            columns=(("SUM", "total_hours"),),
            outputs=("total_hours",),
            conditions=(("emp_id", ("=", "IN"), None), ("date", ("BETWEEN",), None)),
            params=("emp_id", "start_date", "end_date"),
        ),
        Procedure(
            operation=AggregateOperation.MOST_ABSENT_EMPLOYEE,
            rpc="get_most_absent_employee",
            table="attendance",
            columns=((None, "emp_id"), ("COUNT", "*")),
            outputs=("emp_id", "absent_count"),
            conditions=(("status", ("=",), "absent"),),
            ranked=True,
        ),
        Procedure(
            operation=AggregateOperation.MOST_LEAVE_EMPLOYEE,
            rpc="get_most_leave_employee",
            table="leave_requests",
            columns=((None, "emp_id"), ("SUM", "days")),
            outputs=("emp_id", "total_leave_days"),
            ranked=True,
        ),
    )
}


def _columns_match(expressions: list[str], expected) -> bool:
    if len(expressions) != len(expected):
        return False
    for expression, (function, argument) in zip(expressions, expected):
        try:
            spec = parse_column(expression)
        except ValueError:
            return False
        if spec.function != function:
            return False
        # COUNT(*) and COUNT(<any column>) count the same rows here
        if function == "COUNT":
            continue
        if spec.argument != argument:
            return False
    return True


def _order_targets(query: IntermediateQuery, procedure: Procedure) -> set:
    """Names the caller may use in orderBy to mean the ranked aggregate."""
    expression = query.columns[-1]
    spec = parse_column(expression)
    return {
        expression.lower(),
        spec.output_name.lower(),
        procedure.outputs[-1],
        f"{spec.function}({spec.argument})".lower(),
    }


def match_procedure(query: IntermediateQuery) -> Procedure | None:
    """Return the procedure whose shape `query` has, if any."""
    if query.scope_emp_id is not None:
        return None
    if query.condition_logic == ConditionLogic.OR and len(query.conditions) > 1:
        return None
    for procedure in PROCEDURES.values():
        if query.table != procedure.table:
            continue
        if not _columns_match(query.columns, procedure.columns):
            continue

        expected = {column: (ops, value) for column, ops, value in procedure.conditions}
        if set(query.conditions) != set(expected):
            continue
        shape_ok = True
        for column, condition in query.conditions.items():
            ops, value = expected[column]
            if condition.operator not in ops:
                shape_ok = False
            elif value is not None and str(condition.value).strip().lower() != value:
                shape_ok = False
        if not shape_ok:
            continue

        if procedure.ranked:
            if query.limit != 1 or len(query.order_by) != 1:
                continue
            order = query.order_by[0]
            if order.ascending or order.column.lower() not in _order_targets(query, procedure):
                continue
        elif query.order_by or query.limit not in (None, 1):
            continue
        return procedure
    return None


def _single_emp_id(value, client) -> int | None:
    if isinstance(value, str) and value.strip().upper().startswith("(SELECT"):
        value = name_resolver.resolve(value.strip(), client=client)
    if isinstance(value, (list, tuple)):
        if len(value) != 1:
            return None
        value = value[0]
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _procedure_params(procedure: Procedure, query: IntermediateQuery, client, today) -> dict[str, Any]:
    if not procedure.params:
        return {}

    if query.operation is not None:
        source = dict(query.params)
        if "date" in source and not ("start_date" in source and "end_date" in source):
            source["start_date"], source["end_date"] = _split_between("date", source["date"])
    else:
        emp = query.conditions["emp_id"]
        start, end = _split_between("date", query.conditions["date"].value)
        source = {"emp_id": emp.value, "start_date": start, "end_date": end}

    missing = [name for name in procedure.params if source.get(name) in (None, "")]
    if missing:
        raise InvalidConditionError(
            f"{procedure.operation.value} requires parameters: {', '.join(missing)}"
        )

    emp_id = _single_emp_id(source["emp_id"], client)
    if emp_id is None:
        raise InvalidConditionError(
            f"{procedure.operation.value} needs exactly one employee, got {source['emp_id']!r}"
        )
    start, end = date_normalizer.normalize_range(source["start_date"], source["end_date"], today=today)
    return {"p_emp_id": emp_id, "p_start_date": start, "p_end_date": end}


def _result_aliases(procedure: Procedure, query: IntermediateQuery) -> list[str]:
    aliases = list(procedure.outputs)
    if len(query.columns) != len(procedure.outputs):
        return aliases
    for i, expression in enumerate(query.columns):
        try:
            spec = parse_column(expression)
        except ValueError:
            continue
        if spec.alias:
            aliases[i] = spec.alias
    return aliases


def _remap_rows(data, procedure: Procedure, aliases: list[str]) -> list[dict[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, (list, dict)):
        # scalar-returning function
        data = [{procedure.outputs[0]: data}]
    elif isinstance(data, dict):
        data = [data]

    renames = dict(zip(procedure.outputs, aliases))
    rows = []
    for row in data:
        if not isinstance(row, dict):
            row = {procedure.outputs[0]: row}
        rows.append({renames.get(key, key): value for key, value in row.items()})
    return rows


def run_procedure(procedure: Procedure, query: IntermediateQuery, client=None, today: date | None = None):
    client = client or get_client()
    params = _procedure_params(procedure, query, client, today)
    logger.info("Routing %s query to procedure %s %s", query.table, procedure.rpc, params)
    try:
        response = client.rpc(procedure.rpc, params).execute()
    except Exception as e:
        logger.error("Procedure %s failed: %s", procedure.rpc, e)
        raise BackendExecutionError(f"{procedure.rpc} failed: {e}") from e
    return _remap_rows(response.data, procedure, _result_aliases(procedure, query))


# -----------------------------------------------------------------------------
# Generic select
# -----------------------------------------------------------------------------

def _split_between(column: str, value) -> tuple[str, str]:
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value]
    else:
        text = str(value or "")
        parts = [p.strip() for p in _BETWEEN_SPLIT.split(text.strip())]
    if len(parts) != 2 or not all(parts):
        raise InvalidConditionError(f"BETWEEN on '{column}' needs two endpoints, got {value!r}")
    return parts[0], parts[1]


def _number(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


def _between_bounds(column: str, value, today) -> tuple[str, str]:
    """Inclusive (low, high) for a BETWEEN; only date columns are normalized."""
    start, end = _split_between(column, value)
    if column in DATE_COLUMNS:
        return date_normalizer.normalize_range(start, end, today=today)
    low, high = _number(start), _number(end)
    if low is not None and high is not None and low > high:
        start, end = end, start
    return start, end


def _like_pattern(value) -> str:
    text = str(value)
    return text if "%" in text else f"%{text}%"


def projection(columns: list[str]) -> str:
    """PostgREST select string; aggregates use the `alias:column.fn()` form."""
    if not columns:
        return "*"
    parts = []
    for expression in columns:
        try:
            spec = parse_column(expression)
        except ValueError:
            parts.append(expression.strip())
            continue
        if spec.is_aggregate:
            function = spec.function.lower()
            body = "count()" if spec.argument == "*" else f"{spec.argument}.{function}()"
            parts.append(f"{spec.output_name}:{body}")
        elif spec.alias:
            parts.append(f"{spec.alias}:{spec.argument}")
        else:
            parts.append(spec.argument)
    return ", ".join(parts)


def _comparison_value(column: str, condition: Condition, today):
    """Date columns accept the same expressions as BETWEEN endpoints."""
    if column not in DATE_COLUMNS or not isinstance(condition.value, str):
        return condition.value
    # an upper bound on a partial date covers the whole period
    end_of_period = condition.operator in ("<=", ">")
    return date_normalizer.normalize(condition.value, today=today, end_of_period=end_of_period)


def _check_operators(query: IntermediateQuery) -> None:
    for column, condition in query.conditions.items():
        if condition.operator not in OPERATORS:
            raise UnknownOperatorError(column, condition.operator)


def _apply_condition(builder, column: str, condition: Condition, today):
    operator = condition.operator
    if operator == "BETWEEN":
        start, end = _between_bounds(column, condition.value, today)
        return builder.gte(column, start).lte(column, end)
    if operator == "IN":
        return builder.in_(column, list(condition.value))
    if operator == "LIKE":
        return builder.ilike(column, _like_pattern(condition.value))
    return getattr(builder, _FILTERS[operator])(column, _comparison_value(column, condition, today))


def _or_value(value) -> str:
    text = str(value)
    if any(ch in text for ch in ',()"') or text != text.strip():
        return '"' + text.replace('"', '\\"') + '"'
    return text


def _or_filter(column: str, condition: Condition, today) -> str:
    operator = condition.operator
    if operator == "BETWEEN":
        start, end = _between_bounds(column, condition.value, today)
        return f"and({column}.gte.{start},{column}.lte.{end})"
    if operator == "IN":
        return f"{column}.in.({','.join(_or_value(v) for v in condition.value)})"
    if operator == "LIKE":
        return f"{column}.ilike.{_or_value(_like_pattern(condition.value).replace('%', '*'))}"
    return f"{column}.{_FILTERS[operator]}.{_or_value(_comparison_value(column, condition, today))}"


def build_select(query: IntermediateQuery, client, today: date | None = None):
    """Return the Supabase request builder for a generic select."""
    builder = client.table(query.table).select(projection(query.columns))
    if query.scope_emp_id is not None:
        builder = builder.eq("emp_id", query.scope_emp_id)

    if query.conditions:
        if query.condition_logic == ConditionLogic.OR:
            filters = [_or_filter(c, cond, today) for c, cond in query.conditions.items()]
            builder = builder.or_(",".join(filters))
        else:
            for column, condition in query.conditions.items():
                builder = _apply_condition(builder, column, condition, today)

    for order in query.order_by:
        builder = builder.order(order.column, desc=not order.ascending)
    if query.limit:
        builder = builder.limit(query.limit)
    return builder


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def resolve_subqueries(query: IntermediateQuery, client=None) -> IntermediateQuery:
    """Rewrite `col = (SELECT emp_id FROM employees ...)` into `col IN [ids]`."""
    resolved = query
    for column, condition in query.conditions.items():
        if not condition.is_subquery:
            continue
        if condition.operator not in ("=", "IN"):
            raise UnsupportedSubqueryError(f"{column} {condition.operator} {condition.value}")
        text = condition.value.strip()
        if text.startswith("(") and text.endswith(")"):
            text = text[1:-1].strip()
        ids = name_resolver.resolve(text, client=client or get_client())
        resolved = resolved.with_condition(column, Condition(operator="IN", value=ids))
    return resolved


def execute(query: IntermediateQuery, client=None, today: date | None = None) -> list[dict[str, Any]]:
    """Run `query` and return its rows; an empty list means no matches."""
    client = client or get_client()
    _check_operators(query)
    query = resolve_subqueries(query, client)

    if query.operation is not None:
        return run_procedure(PROCEDURES[query.operation], query, client, today)

    if query.type == QueryType.AGGREGATE:
        procedure = match_procedure(query)
        if procedure is not None:
            try:
                return run_procedure(procedure, query, client, today)
            except InvalidConditionError as e:
                # e.g. several employees matched a name; aggregate client-side instead
                logger.info("Procedure %s not applicable (%s), using generic select", procedure.rpc, e)

    if query.condition_logic == ConditionLogic.AND:
        for column, condition in query.conditions.items():
            if condition.operator == "IN" and not condition.value:
                logger.debug("Empty IN list on %s, no rows can match", column)
                return []

    builder = build_select(query, client, today)
    try:
        response = builder.execute()
    except Exception as e:
        logger.error("Query on %s failed: %s", query.table, e)
        raise BackendExecutionError(f"Query on {query.table} failed: {e}") from e
    return list(response.data or [])
