# narrator.py
"""
Turns query results back into a Thai answer.
"""

import json
import logging
from typing import Any

import settings
from llm_service import call_llm
from query_model import IntermediateQuery

logger = logging.getLogger(__name__)

NARRATOR_SYSTEM_PROMPT = "You are a friendly HR assistant who explains database results in Thai."

FORMAT_RULES = """
- ตอบเป็นภาษาไทย สุภาพและเป็นกันเอง
- ถ้าข้อมูลมี employee_name ให้เรียกพนักงานว่า "{ชื่อ} รหัสพนักงาน {emp_id}" ถ้าไม่มีชื่อให้ใช้ "รหัสพนักงาน {emp_id}" เท่านั้น
- ตัวเลขให้ใส่เครื่องหมายจุลภาคคั่นหลักพัน เช่น 45,000
- เงินเดือน ค่าจ้าง โบนัส และยอดเงินอื่น ๆ ให้ต่อท้ายด้วย "บาท"
- ห้ามแสดงข้อมูลเป็น JSON หรือโครงสร้างข้อมูล
"""


def build_prompt(
    question: str,
    rows: list[dict[str, Any]],
    query: IntermediateQuery,
    personalized: bool,
) -> str:
    shown = rows[:settings.NARRATOR_MAX_ROWS]

    if not rows:
        volume_hint = "ไม่พบข้อมูลที่ตรงกับคำถาม ให้บอกผู้ใช้ตรง ๆ ว่าไม่พบข้อมูล"
    elif len(rows) > settings.LARGE_RESULT_THRESHOLD:
        volume_hint = (
            f"มีผลลัพธ์ทั้งหมด {len(rows)} รายการ ให้สรุปภาพรวมและประเด็นสำคัญ "
            "ไม่ต้องไล่ทีละรายการ"
        )
    else:
        volume_hint = f"มีผลลัพธ์ทั้งหมด {len(rows)} รายการ"

    if len(shown) < len(rows):
        volume_hint += f" (แสดงเฉพาะ {len(shown)} รายการแรกด้านล่าง)"

    if personalized:
        audience = "คำถามนี้เป็นข้อมูลส่วนตัวของผู้ถาม ให้ตอบโดยพูดกับผู้ถามโดยตรง เช่น \"คุณ...\""
    else:
        audience = "คำถามนี้เป็นคำถามทั่วไป ไม่ใช่ข้อมูลส่วนตัวของผู้ถาม"

    return f"""
Convert the following database results into a natural, conversational answer.

Original user question: "{question}"
Personalized: {str(personalized).lower()}
Database results: {json.dumps(shown, ensure_ascii=False, indent=2, default=str)}
Query structure: {json.dumps(query.to_payload(), ensure_ascii=False, indent=2)}

{volume_hint}
{audience}

Guidelines:
{FORMAT_RULES}
Example answers:
- "พบพนักงานทั้งหมด 13 คน ในระบบ"
- "พนักงานในแผนก IT มีทั้งหมด 4 คน"
- "ปรีชา มั่นคง รหัสพนักงาน 6 มาสาย 2 ครั้งในเดือนมกราคม"
"""


def narrate(
    question: str,
    rows: list[dict[str, Any]],
    query: IntermediateQuery,
    personalized: bool = False,
) -> str:
    reply = call_llm(build_prompt(question, rows, query, personalized), NARRATOR_SYSTEM_PROMPT)
    logger.debug("Narrated %d rows for %r", len(rows), question)
    return reply
