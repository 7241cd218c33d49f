# main.py
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

import database_chat
import hr_repository
import llm_service
import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="HR Database Chatbot")


@app.get("/")
def read_root():
    return {"message": "HR chatbot backend is alive"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


class ChatRequest(BaseModel):
    message: str | None = None
    history: list[dict] = Field(default_factory=list)


class DatabaseChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    employee_id: int | None = Field(None, alias="employeeId")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.post("/chat")
def chat(request: ChatRequest):
    if not request.message:
        return _error("Message is required", 400)
    try:
        return {"reply": llm_service.chat(request.message, request.history)}
    except Exception as e:
        logger.exception("Chat passthrough failed: %s", e)
        return _error("Failed to get response from AI", 500)


@app.post("/database-chat")
def database_chat_endpoint(request: DatabaseChatRequest):
    if not request.message:
        return _error("Message is required", 400)
    try:
        return database_chat.answer(request.message, request.employee_id)
    except Exception as e:
        logger.exception("Database chat error for %r: %s", request.message, e)
        return _error(database_chat.user_message_for(e), 500)


@app.get("/stats/departments")
def department_stats():
    try:
        return {"departments": hr_repository.get_department_stats()}
    except Exception as e:
        logger.exception("Department stats failed: %s", e)
        return _error(database_chat.GENERIC_ERROR_MESSAGE, 500)


@app.get("/employees/{emp_id}/attendance")
def employee_attendance(emp_id: int, start_date: str | None = None, end_date: str | None = None):
    try:
        rows = hr_repository.get_attendance_by_employee(emp_id, start_date, end_date)
    except Exception as e:
        logger.exception("Attendance lookup failed: %s", e)
        return _error(database_chat.GENERIC_ERROR_MESSAGE, 500)
    return {"emp_id": emp_id, "attendance": rows}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
