# chatbot/errors.py
from __future__ import annotations
from enum import Enum


class StatusCode(str, Enum):
    """Codes carried in the `code` field of every API response."""
    SUCCESS = "SUCCESS"
    INVALID_API_KEY = "INVALID_API_KEY"
    MISSING_REQUIRED_PARAMETERS = "MISSING_REQUIRED_PARAMETERS"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MESSAGE_NOT_FOUND = "MESSAGE_NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ChatbotError(Exception):
    """Base for every error the service reports to a caller.

    Subclasses pin the status code and HTTP status so the transport layer can
    render them without knowing which operation raised them.
    """
    code: StatusCode = StatusCode.INTERNAL_SERVER_ERROR
    http_status: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(ChatbotError):
    code = StatusCode.MISSING_REQUIRED_PARAMETERS
    http_status = 400
    default_message = "Few required parameters are missing"

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        super().__init__(message)


class UserNotFound(ChatbotError):
    code = StatusCode.USER_NOT_FOUND
    http_status = 404
    default_message = "User not found"


class MessageNotFound(ChatbotError):
    # absent ids and bot-authored ids are reported the same way
    code = StatusCode.MESSAGE_NOT_FOUND
    http_status = 403
    default_message = "Message not found"


class StorageUnavailable(ChatbotError):
    code = StatusCode.INTERNAL_SERVER_ERROR
    http_status = 500
    default_message = "Internal Server Error"


class InvalidApiKey(ChatbotError):
    code = StatusCode.INVALID_API_KEY
    http_status = 401
    default_message = "Invalid API key"
