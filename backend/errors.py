# errors.py — Kanban error taxonomy with KBN-{STATUS} codes
from typing import Optional

# ============================================================
# ERROR CODE CATALOGUE
# ============================================================

ERROR_CATALOGUE = {
    "KBN-400": {"message": "Invalid operation", "http_status": 400},
    "KBN-404": {"message": "Resource not found", "http_status": 404},
    "KBN-409": {"message": "Conflict with existing resource", "http_status": 409},
    "KBN-409-CYCLE": {"message": "Dependency would create a cycle", "http_status": 409},
}


class KanbanError(Exception):
    """Request-scoped, recoverable failure reported back to the caller"""
    error_code = "KBN-400"

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_CATALOGUE[self.error_code]["message"]
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        return ERROR_CATALOGUE[self.error_code]["http_status"]

    def to_dict(self) -> dict:
        return {"detail": self.message, "error_code": self.error_code}


class NotFound(KanbanError):
    error_code = "KBN-404"

    def __init__(self, resource: str, resource_id=None):
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            super().__init__(f"{resource} not found")
        else:
            super().__init__(f"{resource} {resource_id} not found")


class InvalidOperation(KanbanError):
    error_code = "KBN-400"


class CycleDetected(KanbanError):
    error_code = "KBN-409-CYCLE"


class Conflict(KanbanError):
    error_code = "KBN-409"
