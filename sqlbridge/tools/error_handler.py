"""
sqlbridge/tools/error_handler.py
================================

Readable, actionable text for database failures.

Design Strategy
---------------
Raw connector exceptions contain technical jargon.  When a query fails, the
tool result that goes back to the caller (often an LLM that will explain the
failure to a person) should say what went wrong and what to try next.

``ErrorHandler`` matches the exception message against a table of regex
patterns and returns:

1. A short ``error_type`` label.
2. A plain-English ``message``.
3. Concrete ``suggestions``.

It is implemented as **static methods**; the patterns are class-level
constants.
"""

import re
from typing import Dict, List, Optional, Tuple


class ErrorHandler:
    """Translates database exceptions into messages with suggestions.

    Attributes
    ----------
    DATABASE_ERRORS:
        Map of error pattern (regex) → ``{type, message, suggestions}``.
    """

    # Keys are regex patterns matched against the lowercased exception message.
    DATABASE_ERRORS: Dict[str, dict] = {
        "does not exist or not authorized|doesn't exist|does not exist": {
            "type": "TableNotFound",
            "message": "The table or view doesn't exist or you don't have permission.",
            "suggestions": [
                "Call list_tables to see the available tables",
                "Check the table name spelling",
                "Verify you have permission on this table",
            ],
        },
        "sql compilation error|syntax error": {
            "type": "SQLSyntaxError",
            "message": "There's a syntax error in the SQL statement.",
            "suggestions": [
                "Check for missing commas or quotes",
                "Call describe_table to verify column names",
                "Try simplifying the query to isolate the issue",
            ],
        },
        "invalid identifier": {
            "type": "InvalidIdentifier",
            "message": "A column or table name in the statement is invalid.",
            "suggestions": [
                "Use double quotes for case-sensitive or special character names",
                "Check for typos in column/table names",
            ],
        },
        "division by zero": {
            "type": "DivisionByZero",
            "message": "The statement attempted to divide by zero.",
            "suggestions": [
                "Use NULLIF() to handle zero values: field / NULLIF(divisor, 0)",
                "Add a WHERE clause to filter out zero denominators",
            ],
        },
        "authentication failed|incorrect username or password": {
            "type": "AuthenticationError",
            "message": "Failed to authenticate with the database.",
            "suggestions": [
                "Check SNOWFLAKE_USER and SNOWFLAKE_PASSWORD in .env",
                "Verify the account name is correct",
            ],
        },
        "warehouse.*(does not exist|suspended)|no active warehouse": {
            "type": "WarehouseUnavailable",
            "message": "The configured warehouse isn't available.",
            "suggestions": [
                "Check SNOWFLAKE_WAREHOUSE in your .env file",
                "Ensure the warehouse is running and not suspended",
            ],
        },
        "timed out|timeout": {
            "type": "Timeout",
            "message": "The database did not answer in time.",
            "suggestions": [
                "Retry the request",
                "Add filters or a LIMIT clause to reduce the work",
            ],
        },
    }

    @staticmethod
    def handle_database_error(error: Exception) -> Tuple[str, str, List[str]]:
        """Match a database exception to a known error pattern.

        Returns
        -------
        Tuple[str, str, List[str]]
            ``(error_type, user_message, suggestions)``
        """
        error_str = str(error).lower()
        for pattern, info in ErrorHandler.DATABASE_ERRORS.items():
            if re.search(pattern, error_str):
                return info["type"], info["message"], info["suggestions"]

        return (
            "DatabaseError",
            "An error occurred while executing the statement.",
            [
                "Check the error details above",
                "Verify the SQL syntax is correct",
            ],
        )

    @staticmethod
    def format_error_response(
        error: Exception,
        prefix: str,
        error_type: str,
        message: str,
        suggestions: List[str],
        query: Optional[str] = None,
    ) -> str:
        """Render the text of an error tool result.

        The first line is always ``"<prefix>: <original error>"`` so callers
        can rely on the driver message being present verbatim.
        """
        response = f"{prefix}: {error}\n\n{error_type}: {message}\n"

        if query:
            response += f"\nQuery:\n{query}\n"

        response += "\nSuggestions:\n"
        for i, suggestion in enumerate(suggestions, 1):
            response += f"{i}. {suggestion}\n"

        return response.rstrip("\n")
