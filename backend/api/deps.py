"""Shared router dependencies: services built at startup and error mapping."""

from fastapi import HTTPException, Request, status

from chats.service import ChatNotFoundError, ChatService
from document.exceptions import (
    DocumentLockTimeoutError,
    DocumentNotFoundError,
    VersionConflictError,
    VersionNotFoundError,
)
from document.service import DocumentService
from plans.service import PlanService
from storage.blob import StorageError


def get_document_service(request: Request) -> DocumentService:
    return request.app.state.documents


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chats


def get_plan_service(request: Request) -> PlanService:
    return request.app.state.plans


def to_http_error(error: Exception) -> HTTPException:
    """Translate a domain error into the HTTP error the client sees."""
    if isinstance(error, DocumentNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    if isinstance(error, VersionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    if isinstance(error, ChatNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if isinstance(error, VersionConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, DocumentLockTimeoutError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage unavailable")
    raise error
