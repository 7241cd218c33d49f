# query_translator.py
"""
Natural language to IntermediateQuery translator.
"""

import json
import logging
import re
from datetime import date

from pydantic import ValidationError

from errors import TranslationParseError
from llm_service import call_llm
from query_model import IntermediateQuery

logger = logging.getLogger(__name__)


# --- DATABASE SCHEMA SUMMARY AND QUERY RULES FOR THE MODEL --- #

SCHEMA_DESCRIPTION = """
TABLE employees: emp_id, first_name, last_name, department, position, hire_date, salary, phone, email, status
TABLE attendance: attendance_id, emp_id, date, check_in, check_out, total_hours, status, notes
TABLE leave_requests: leave_id, emp_id, leave_type, start_date, end_date, days, reason, status, applied_date, approved_by, approved_date
TABLE payroll: payroll_id, emp_id, pay_period, basic_salary, overtime_pay, bonus, allowances, deductions, net_pay, pay_date
TABLE benefits: benefit_id, emp_id, social_security, health_insurance, life_insurance, provident_fund, annual_leave_days, sick_leave_days, personal_leave_days, effective_date

VALUES:
- employees.status: active, inactive, resigned
- attendance.status: present, absent, late, half_day
- leave_requests.leave_type: ลาป่วย, ลากิจ, ลาพักร้อน, ลาคลอด, ลาฉุกเฉิน
- leave_requests.status: pending, approved, rejected
- payroll.pay_period: YYYY-MM
"""

QUERY_RULES = """
OUTPUT SHAPE:
{
  "type": "SELECT" | "COUNT" | "AGGREGATE",
  "table": "<table>",
  "columns": ["column", "AGG(column) AS alias"],          (optional, omit for all columns)
  "conditions": {"<column>": {"operator": "<op>", "value": <value>}},   (optional)
  "conditionLogic": "AND" | "OR",                          (optional, default AND)
  "orderBy": [{"column": "<column>", "direction": "asc" | "desc"}],   (optional)
  "limit": <positive integer>,                             (optional)
  "operation": "<named operation>",                        (optional, see below)
  "params": {"emp_id": ..., "start_date": "...", "end_date": "..."}   (only with operation)
}

OPERATORS: =, !=, >, >=, <, <=, IN, LIKE, BETWEEN. Nothing else.
- first_name, last_name, department, position: use LIKE with %value%.
- attendance.status, leave_requests.status, employees.status: exact = with one of the listed values. Never LIKE.
- A full date (YYYY-MM-DD): =.
- A whole month (YYYY-MM): BETWEEN with value "YYYY-MM-01 AND YYYY-MM-<last day of that month>" (February has 28 or 29 days).
- Relative dates: CURRENT_DATE or CURRENT_DATE - INTERVAL '<n> day'.
- IN takes a JSON array.
- To filter another table by an employee name, use
  {"operator": "=", "value": "(SELECT emp_id FROM employees WHERE first_name LIKE '%<name>%')"}
  (last_name LIKE works the same way). No other subqueries.
- Use conditionLogic OR only when the question clearly asks for either/or.

NAMED OPERATIONS (use "type": "AGGREGATE" and "operation" instead of columns):
- average_salary: average salary of all employees
- department_highest_avg_salary: the department with the highest average salary
- total_work_hours: total worked hours of ONE employee in a date range; params emp_id, start_date, end_date
- most_absent_employee: the employee with the most absences
- most_leave_employee: the employee with the most leave days

EXAMPLES:
- "แสดงพนักงานทั้งหมด" -> {"type": "SELECT", "table": "employees"}
- "พนักงานแผนก IT มีกี่คน" -> {"type": "COUNT", "table": "employees", "conditions": {"department": {"operator": "LIKE", "value": "%IT%"}}}
- "ใครมาสายเมื่อวาน" -> {"type": "SELECT", "table": "attendance", "conditions": {"status": {"operator": "=", "value": "late"}, "date": {"operator": "=", "value": "CURRENT_DATE - INTERVAL '1 day'"}}}
- "การลาของสมชายเดือนมีนาคม 2024" -> {"type": "SELECT", "table": "leave_requests", "conditions": {"emp_id": {"operator": "=", "value": "(SELECT emp_id FROM employees WHERE first_name LIKE '%สมชาย%')"}, "start_date": {"operator": "BETWEEN", "value": "2024-03-01 AND 2024-03-31"}}}
- "เงินเดือนเฉลี่ยของพนักงาน" -> {"type": "AGGREGATE", "table": "employees", "operation": "average_salary"}
- "ชั่วโมงทำงานรวมของพนักงานรหัส 3 เดือนมกราคม 2024" -> {"type": "AGGREGATE", "table": "attendance", "operation": "total_work_hours", "params": {"emp_id": 3, "start_date": "2024-01-01", "end_date": "2024-01-31"}}
- "5 คนที่เงินเดือนสูงสุด" -> {"type": "SELECT", "table": "employees", "columns": ["emp_id", "first_name", "last_name", "salary"], "orderBy": [{"column": "salary", "direction": "desc"}], "limit": 5}
"""

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def build_prompt(user_query: str, today: date | None = None) -> str:
    today = today or date.today()
    return f"""
You are a database query translator for an HR system. Convert the question into ONE JSON object.

TODAY: {today.isoformat()}

DATABASE SCHEMA:
{SCHEMA_DESCRIPTION}
{QUERY_RULES}

USER QUESTION:
\"\"\"{user_query}\"\"\"

Respond only with the JSON object (no markdown, no comments, no other text).
"""


def parse_reply(reply: str) -> IntermediateQuery:
    """Parse a model reply into an IntermediateQuery or raise TranslationParseError."""
    cleaned = _CODE_FENCE.sub("", reply or "").strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response: %r", reply)
        raise TranslationParseError(reply, "invalid JSON") from e

    if not isinstance(payload, dict):
        logger.error("AI response is not a JSON object: %r", reply)
        raise TranslationParseError(reply, "expected a JSON object")

    try:
        return IntermediateQuery.model_validate(payload)
    except ValidationError as e:
        logger.error("AI response does not describe a valid query: %r (%s)", reply, e)
        raise TranslationParseError(reply, "invalid query structure") from e


def translate(user_query: str, today: date | None = None) -> IntermediateQuery:
    """
    Translates a natural-language HR question into an IntermediateQuery using the LLM.
    """
    reply = call_llm(build_prompt(user_query, today))
    query = parse_reply(reply)
    logger.info("Translated %r -> %s", user_query, query.to_payload())
    return query
