from .base import Base, async_engine, async_session_factory, create_tables, get_db
from .chat import Chat
from .document import CreatedBy, Document, DocumentVersion
from .plan import Plan, PlanStatus, PlanStep, StepStatus

__all__ = [
    "Base",
    "async_engine",
    "async_session_factory",
    "create_tables",
    "get_db",
    "Chat",
    "CreatedBy",
    "Document",
    "DocumentVersion",
    "Plan",
    "PlanStatus",
    "PlanStep",
    "StepStatus",
]
