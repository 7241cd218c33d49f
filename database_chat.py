# database_chat.py
"""
Database chat pipeline: guard -> translate -> scope -> execute -> enrich -> narrate.
"""
import logging
from datetime import date
from typing import Any

import settings
from access_guard import GuardAction, apply_decision, guard
from errors import TranslationParseError
from hr_repository import enrich_with_names
from narrator import narrate
from query_executor import execute
from query_translator import translate

logger = logging.getLogger(__name__)

NOT_UNDERSTOOD_MESSAGE = "ขออภัย ไม่เข้าใจคำถามของคุณ กรุณาลองถามใหม่ด้วยคำที่ชัดเจนขึ้น"
GENERIC_ERROR_MESSAGE = "ขออภัย ไม่สามารถประมวลผลคำถามของคุณได้ กรุณาลองใหม่อีกครั้ง"


def user_message_for(error: Exception) -> str:
    """Localized message shown to the user for a failed request."""
    if isinstance(error, TranslationParseError) or "Could not understand" in str(error):
        return NOT_UNDERSTOOD_MESSAGE
    return GENERIC_ERROR_MESSAGE


def answer(
    message: str,
    employee_id: int | None = None,
    client=None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    Answer a database question. Raises on any pipeline failure; the caller
    turns the exception into an error response.
    """
    decision = guard(message, employee_id)
    if decision.action == GuardAction.REJECT:
        return {"reply": decision.message, "restricted": True}
    if decision.action == GuardAction.CLARIFY:
        return {"reply": decision.message}

    query = translate(message, today)
    query = apply_decision(query, decision)

    rows = execute(query, client, today)
    if settings.ENRICH_EMPLOYEE_NAMES:
        rows = enrich_with_names(rows, client)

    reply = narrate(message, rows, query, decision.personalized)
    logger.info("Answered %r with %d rows (personalized=%s)", message, len(rows), decision.personalized)
    return {
        "reply": reply,
        "queryStructure": query.to_payload(),
        "resultsCount": len(rows),
        "personalized": decision.personalized,
    }
