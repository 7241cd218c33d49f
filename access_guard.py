# access_guard.py
"""
Access scoping for database chat questions.

guard() classifies the question text with two independent pattern sets and
decides whether to pass it, refuse it, or ask whose data is meant.
scope_query() applies the resulting emp_id restriction to a translated query.

The text classification is a heuristic for a demo without authentication: a
rephrased question can evade it. It is not an access-control boundary. With
ENFORCE_EMPLOYEE_SCOPE enabled, queries from a caller with an employee id are
always restricted to that employee at compile time, whatever the wording.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

import settings
from query_model import (
    AggregateOperation,
    Condition,
    ConditionLogic,
    IntermediateQuery,
    TABLE_COLUMNS,
)

logger = logging.getLogger(__name__)

REJECT_MESSAGE = (
    "ขออภัย คุณสามารถดูได้เฉพาะข้อมูลของตัวเองเท่านั้น "
    "ไม่สามารถเข้าถึงข้อมูลของพนักงานคนอื่นได้"
)
CLARIFY_MESSAGE = (
    "กรุณาระบุว่าต้องการดูข้อมูลของพนักงานคนใด "
    "เช่น ระบุชื่อหรือรหัสพนักงาน หรือเลือกพนักงานก่อนถามคำถาม"
)

_SELF = r"(?:ฉัน|ผม|ดิฉัน|กระผม|หนู|ตัวเอง)"

PERSONAL_PATTERNS = [
    re.compile(_SELF),
    re.compile(r"\b(?:my|mine|myself)\b", re.IGNORECASE),
    # "I" as the subject: "I took", "did I"
    re.compile(r"\bI(?:'ve|'m)?\s+(?:have|had|took|take|was|am|did|used|worked|got|earned)\b", re.IGNORECASE),
    re.compile(r"\b(?:do|did|have|had|am|was|can)\s+I\b", re.IGNORECASE),
    re.compile(r"วันลา(?:คง)?เหลือ"),
    re.compile(r"สิทธิ์?(?:การ)?ลา"),
    re.compile(r"สลิปเงินเดือน"),
    re.compile(r"leave\s+balance", re.IGNORECASE),
]

OTHER_EMPLOYEE_PATTERNS = [
    re.compile(r"(?:เงินเดือน|ข้อมูล|พนักงาน|การเข้างาน|วันลา|การลา|ประวัติ)ของ(?!\s*" + _SELF + ")"),
    re.compile(r"\b(?:salary|salaries|data|records?|information|attendance|leaves?)\s+of\s+(?!me\b|myself\b)", re.IGNORECASE),
    re.compile(r"(?:รหัส(?:พนักงาน)?|\bemp_?id|\bemployee\s*id|\bid)\s*[:#]?\s*\d+", re.IGNORECASE),
    re.compile(r"แผนก|ฝ่าย|\bdepartments?\b", re.IGNORECASE),
]

# named operations that take an employee parameter
_EMPLOYEE_OPERATIONS = {AggregateOperation.TOTAL_WORK_HOURS}


class GuardAction(str, Enum):
    PASS = "PASS"
    REJECT = "REJECT"
    CLARIFY = "CLARIFY"


@dataclass
class GuardDecision:
    action: GuardAction
    message: str | None = None
    conditions: dict[str, Condition] = field(default_factory=dict)
    personalized: bool = False

    @property
    def employee_id(self) -> int | None:
        condition = self.conditions.get("emp_id")
        return condition.value if condition else None


def is_personal_question(question: str) -> bool:
    return any(p.search(question) for p in PERSONAL_PATTERNS)


def targets_other_employee(question: str) -> bool:
    return any(p.search(question) for p in OTHER_EMPLOYEE_PATTERNS)


def guard(question: str, employee_id: int | None, enforce_scope: bool | None = None) -> GuardDecision:
    """
    | employee_id | other employee | personal | action                       |
    |-------------|----------------|----------|------------------------------|
    | yes         | yes            | any      | REJECT                       |
    | no          | any            | yes      | CLARIFY                      |
    | yes         | no             | yes      | PASS + emp_id = employee_id  |
    | any         | no             | no       | PASS unmodified              |

    No employee id with an other-employee pattern and no personal pattern is
    an unrestricted question and passes unmodified too.
    """
    if enforce_scope is None:
        enforce_scope = settings.ENFORCE_EMPLOYEE_SCOPE

    question = question or ""
    personal = is_personal_question(question)
    other = targets_other_employee(question)

    if employee_id is not None and other:
        logger.info("Refusing question from employee %s about other employees: %r", employee_id, question)
        return GuardDecision(GuardAction.REJECT, message=REJECT_MESSAGE)

    if employee_id is None and personal:
        return GuardDecision(GuardAction.CLARIFY, message=CLARIFY_MESSAGE)

    if employee_id is not None and (personal or enforce_scope):
        return GuardDecision(
            GuardAction.PASS,
            conditions={"emp_id": Condition(operator="=", value=employee_id)},
            personalized=personal,
        )

    return GuardDecision(GuardAction.PASS)


def scope_query(query: IntermediateQuery, employee_id: int) -> IntermediateQuery:
    """Restrict `query` to rows of `employee_id`, replacing any emp_id filter the model chose."""
    scoped = query
    if query.operation is not None:
        if query.operation in _EMPLOYEE_OPERATIONS:
            params = dict(query.params)
            params["emp_id"] = employee_id
            return query.model_copy(update={"params": params})
        # organisation-wide operations become a plain select of the caller's rows
        scoped = query.model_copy(update={"operation": None, "params": {}})

    if "emp_id" not in TABLE_COLUMNS[scoped.table]:
        return scoped
    others = {c: cond for c, cond in scoped.conditions.items() if c != "emp_id"}
    if scoped.condition_logic == ConditionLogic.OR and others:
        # emp_id must hold alongside the OR group, not as one more alternative
        return scoped.model_copy(update={"conditions": others, "scope_emp_id": employee_id})
    return scoped.with_condition("emp_id", Condition(operator="=", value=employee_id))


def apply_decision(query: IntermediateQuery, decision: GuardDecision) -> IntermediateQuery:
    if decision.employee_id is None:
        return query
    return scope_query(query, decision.employee_id)
