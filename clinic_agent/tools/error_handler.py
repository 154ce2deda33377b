"""
clinic_agent/tools/error_handler.py
===================================

Error taxonomy for the data tools, and classification of raw store errors.

Every failure a tool can hit is a ``QueryError``.  None of them reach the
end user directly: the dispatcher turns them into a JSON payload and hands
it back to the model, which is expected to correct its next call.

    QueryError
    ├── UnknownTableError            table not in the schema registry
    ├── MalformedToolArgumentsError  missing / wrongly typed arguments
    └── StoreError                   the store rejected or failed the read

Raw connector exceptions are noisy.  ``ErrorHandler`` matches the exception
message against a small pattern table and produces a short hint the model
can act on (``"check column names with get_database_schema"``) without
echoing the full SQL or connection details back.
"""

import re
from typing import Any, Dict, List, Optional, Tuple


class QueryError(Exception):
    """Base class for errors reported back to the model as JSON."""

    error_type = "QueryError"

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "type": self.error_type}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class UnknownTableError(QueryError):
    error_type = "UnknownTable"

    def __init__(self, table_name: str):
        super().__init__(
            f'테이블 "{table_name}"을(를) 찾을 수 없습니다.',
            hint="Call get_database_schema to list the available tables.",
        )
        self.table_name = table_name


class MalformedToolArgumentsError(QueryError):
    error_type = "MalformedToolArguments"

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.details = details or []

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.details:
            payload["details"] = self.details
        return payload


class StoreError(QueryError):
    """The store rejected or failed a read.

    ``kind`` is the classification from ``ErrorHandler`` (``InvalidIdentifier``,
    ``StoreUnavailable``…) when the error came from the store itself.
    """

    error_type = "StoreError"

    def __init__(self, message: str, hint: Optional[str] = None, kind: Optional[str] = None):
        super().__init__(message, hint)
        self.kind = kind

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        if self.kind:
            payload["kind"] = self.kind
        return payload


class ErrorHandler:
    """Translates raw store exceptions into ``StoreError`` with a hint.

    Attributes
    ----------
    STORE_ERRORS:
        Map of error pattern (regex, matched case-insensitively) →
        ``{type, hint}``.
    """

    STORE_ERRORS: Dict[str, dict] = {
        "invalid identifier": {
            "type": "InvalidIdentifier",
            "hint": "A column name does not exist. Check column names with get_database_schema.",
        },
        "does not exist or not authorized": {
            "type": "TableNotFound",
            "hint": "The table is not available. Check table names with get_database_schema.",
        },
        "is not recognized|can't parse|cannot be cast": {
            "type": "InvalidValue",
            "hint": "A filter value does not match the column type (dates must be YYYY-MM-DD).",
        },
        "sql compilation error": {
            "type": "QueryRejected",
            "hint": "Simplify the filters or select fewer columns and try again.",
        },
        "authentication failed|incorrect username or password": {
            "type": "StoreUnavailable",
            "hint": "The data store is not reachable right now.",
        },
        "timed out|timeout|connection": {
            "type": "StoreUnavailable",
            "hint": "The data store did not respond. Try again with a narrower query.",
        },
    }

    @staticmethod
    def classify(error: Exception) -> Tuple[str, str]:
        """Match a store exception to a known error pattern.

        Returns
        -------
        Tuple[str, str]
            ``(error_type, hint)``
        """
        error_str = str(error).lower()
        for pattern, info in ErrorHandler.STORE_ERRORS.items():
            if re.search(pattern, error_str):
                return info["type"], info["hint"]
        return "StoreError", "The query failed. Adjust the filters and try again."

    @staticmethod
    def to_store_error(error: Exception) -> StoreError:
        """Wrap a raw store exception, keeping only its first message line."""
        error_type, hint = ErrorHandler.classify(error)
        text = str(error).strip()
        first_line = text.splitlines()[0] if text else error_type
        return StoreError(first_line, hint=hint, kind=error_type)
