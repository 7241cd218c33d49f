# errors.py
"""
Exceptions raised along the database chat pipeline.
"""


class HRChatError(Exception):
    """Base class for chatbot failures."""


class LLMServiceError(HRChatError):
    """The language model call failed."""


class TranslationParseError(HRChatError):
    """The model reply could not be turned into an IntermediateQuery."""

    def __init__(self, raw_reply: str, reason: str = ""):
        self.raw_reply = raw_reply
        self.reason = reason
        message = "Could not understand the query"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class QueryExecutionError(HRChatError):
    """Base class for failures while compiling or running a query."""


class UnsupportedSubqueryError(QueryExecutionError):
    def __init__(self, subquery: str):
        self.subquery = subquery
        super().__init__(f"Unsupported subquery: {subquery}")


class UnknownOperatorError(QueryExecutionError):
    def __init__(self, column: str, operator: str):
        self.column = column
        self.operator = operator
        super().__init__(f"Unknown operator '{operator}' on column '{column}'")


class InvalidConditionError(QueryExecutionError):
    pass


class BackendExecutionError(QueryExecutionError):
    """The Supabase call itself failed."""
