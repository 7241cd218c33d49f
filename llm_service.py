# llm_service.py

import logging

from openai import OpenAI

import settings
from errors import LLMServiceError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a backend AI that translates HR questions into structured queries and explains results."
CHAT_SYSTEM_PROMPT = "You are a friendly HR assistant. Answer in the language the user writes in."

_client: OpenAI | None = None


def get_client() -> OpenAI:
    global _client
    if _client is None:
        _client = OpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


def call_llm(prompt: str, system_prompt: str = SYSTEM_PROMPT) -> str:
    """
    Sends a prompt to the OpenAI chat API and returns the response text.
    """
    try:
        response = get_client().chat.completions.create(
            model=settings.MODEL_NAME,
            temperature=settings.LLM_TEMPERATURE,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt}
            ]
        )
        return (response.choices[0].message.content or "").strip()

    except Exception as e:
        logger.error("LLM error: %s", e)
        raise LLMServiceError(str(e)) from e


def _history_messages(history: list[dict] | None) -> list[dict[str, str]]:
    """
    Accepts [{role, content}] turns, and the {role: model, parts: [{text}]}
    shape some chat widgets send.
    """
    messages = []
    for turn in history or []:
        role = turn.get("role", "user")
        if role == "model":
            role = "assistant"
        if role not in ("user", "assistant"):
            continue
        content = turn.get("content")
        if content is None:
            content = "".join(part.get("text", "") for part in turn.get("parts", []))
        messages.append({"role": role, "content": content})
    return messages


def chat(message: str, history: list[dict] | None = None) -> str:
    """Plain conversational passthrough, capped at CHAT_MAX_TOKENS."""
    messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
    messages.extend(_history_messages(history))
    messages.append({"role": "user", "content": message})
    try:
        response = get_client().chat.completions.create(
            model=settings.MODEL_NAME,
            max_tokens=settings.CHAT_MAX_TOKENS,
            messages=messages,
        )
        return (response.choices[0].message.content or "").strip()
    except Exception as e:
        logger.error("LLM chat error: %s", e)
        raise LLMServiceError(str(e)) from e
