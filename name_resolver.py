# name_resolver.py
"""
Resolves the one pseudo-SQL subquery shape the translator emits as a
condition value:

    (SELECT emp_id FROM employees WHERE first_name LIKE '%สมชาย%')

into a concrete list of employee ids. Anything else is rejected.
"""
import logging
import re

from errors import BackendExecutionError, UnsupportedSubqueryError
from supabase_client import get_client

logger = logging.getLogger(__name__)

_SUBQUERY = re.compile(
    r"^\(?\s*select\s+emp_id\s+from\s+employees\s+where\s+(?P<where>.+?)\s*\)?\s*;?\s*$",
    re.IGNORECASE | re.DOTALL,
)
_NAME_CLAUSE = r"{column}\s*(?:=|i?like)\s*'%?(?P<value>[^'%]+)%?'"
_FIRST_NAME = re.compile(_NAME_CLAUSE.format(column=r"\bfirst_name"), re.IGNORECASE)
_LAST_NAME = re.compile(_NAME_CLAUSE.format(column=r"\blast_name"), re.IGNORECASE)
_EMP_ID = re.compile(r"\bemp_id\s*=\s*'?(?P<value>\d+)'?", re.IGNORECASE)


def resolve(subquery_text: str, client=None) -> list[int]:
    """Return the emp_id values matched by `subquery_text` (possibly empty)."""
    match = _SUBQUERY.match(subquery_text or "")
    if not match:
        raise UnsupportedSubqueryError(subquery_text)

    where = match.group("where")
    first_name = _FIRST_NAME.search(where)
    last_name = _LAST_NAME.search(where)
    emp_id = _EMP_ID.search(where)
    if not (first_name or last_name or emp_id):
        raise UnsupportedSubqueryError(subquery_text)

    client = client or get_client()
    lookup = client.table("employees").select("emp_id")
    if first_name:
        lookup = lookup.ilike("first_name", f"%{first_name.group('value').strip()}%")
    if last_name:
        lookup = lookup.ilike("last_name", f"%{last_name.group('value').strip()}%")
    if emp_id:
        lookup = lookup.eq("emp_id", int(emp_id.group("value")))

    try:
        response = lookup.execute()
    except Exception as e:
        logger.error("Employee lookup for subquery %r failed: %s", subquery_text, e)
        raise BackendExecutionError(f"Employee lookup failed: {e}") from e

    ids = [row["emp_id"] for row in (response.data or []) if row.get("emp_id") is not None]
    logger.debug("Subquery %r resolved to %s", subquery_text, ids)
    return ids
