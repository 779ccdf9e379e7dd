"""Errors raised by recurring invoice generation.

Each error carries a stable ``kind`` that the API returns to callers together
with the HTTP status it maps to.
"""


class RecurrenceError(Exception):
    kind = "RecurrenceError"
    status_code = 400

    def __init__(self, message: str, template_id: int | None = None):
        super().__init__(message)
        self.message = message
        self.template_id = template_id

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class TemplateNotFound(RecurrenceError):
    kind = "TemplateNotFound"
    status_code = 404


class TemplateNotRecurring(RecurrenceError):
    kind = "TemplateNotRecurring"
    status_code = 409


class GenerationLimitReached(RecurrenceError):
    kind = "GenerationLimitReached"
    status_code = 409


class RecurrenceExpired(RecurrenceError):
    kind = "RecurrenceExpired"
    status_code = 409


class ConcurrentGenerationConflict(RecurrenceError):
    kind = "ConcurrentGenerationConflict"
    status_code = 409


class ItemCopyFailed(RecurrenceError):
    kind = "ItemCopyFailed"
    status_code = 500
