# settings.py
"""
Application configuration.
Environment variables and defaults for the HR database chatbot.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# -----------------------------------------------------------------------------
# Language model
# -----------------------------------------------------------------------------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o-mini")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0"))
# Reply cap for the generic chat passthrough
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "300"))

# -----------------------------------------------------------------------------
# Supabase
# -----------------------------------------------------------------------------
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -----------------------------------------------------------------------------
# Query pipeline
# -----------------------------------------------------------------------------
# Rewrites a stale year in YYYY-MM-DD dates to the current year when the
# month/day falls within the next six months. Off by default: it misreads
# genuinely historical dates such as hire dates.
DATE_YEAR_CORRECTION = _flag("DATE_YEAR_CORRECTION", "false")

# When on, every query from a caller with an employee id is restricted to
# that employee's rows, whatever the question text says.
ENFORCE_EMPLOYEE_SCOPE = _flag("ENFORCE_EMPLOYEE_SCOPE", "false")

# Attach employee display names to result rows carrying emp_id
ENRICH_EMPLOYEE_NAMES = _flag("ENRICH_EMPLOYEE_NAMES", "true")

# -----------------------------------------------------------------------------
# Narration
# -----------------------------------------------------------------------------
LARGE_RESULT_THRESHOLD = int(os.getenv("LARGE_RESULT_THRESHOLD", "20"))
NARRATOR_MAX_ROWS = int(os.getenv("NARRATOR_MAX_ROWS", "50"))
