"""
sqlbridge/errors.py
===================

Exception taxonomy shared by the server core and the client.

Where each error ends up
------------------------
- ``ValidationError`` (and subclasses): caught by the executor and returned
  to the caller as an ``isError`` tool result.  Never crashes a session.
- ``BackingResourceError``: raised by the database client, caught by the
  executor and returned as an ``isError`` tool result.
- ``ForbiddenOperation`` / ``ToolNotFound``: raised out of the executor and
  turned into JSON-RPC errors by the protocol dispatcher.  The invocation is
  rejected; the session keeps running.
- ``SessionNotFound``: raised by the multiplexer, answered with HTTP 404 on
  the message endpoint.
- ``TurnInProgress``: raised by the orchestrator when a second user turn is
  submitted while one is still running.
"""


class SqlBridgeError(Exception):
    """Base class for every error raised by sqlbridge."""


class ValidationError(SqlBridgeError):
    """Caller-supplied arguments do not satisfy a tool's input schema."""


class MissingRequiredArgument(ValidationError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required argument '{field}'")


class InvalidIdentifier(ValidationError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(
            "Invalid table name. Only alphanumeric characters and underscores are allowed."
        )


class ForbiddenOperation(SqlBridgeError):
    """A query was sent to a tool that does not allow its statement category."""


class ToolNotFound(SqlBridgeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}")


class SessionNotFound(SqlBridgeError):
    def __init__(self, session_id: str | None):
        self.session_id = session_id
        super().__init__("Session not found")


class BackingResourceError(SqlBridgeError):
    """The database rejected a query or could not be reached."""


class TurnInProgress(SqlBridgeError):
    """A chat turn is already running for this conversation."""
