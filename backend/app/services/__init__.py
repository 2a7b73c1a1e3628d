from app.services.audit import audit_event

__all__ = [
    "audit_event",
]
