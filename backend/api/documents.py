"""Documents CRUD and version history."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from api.deps import get_document_service, to_http_error
from auth.jwt import get_current_user_id
from chats.service import ChatNotFoundError
from document.exceptions import DocumentError
from document.service import DocumentService, SaveResult
from models import CreatedBy, Document, DocumentVersion
from storage.blob import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["documents"])

_DOMAIN_ERRORS = (DocumentError, StorageError, ChatNotFoundError)


class DocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = ""
    chat_id: str | None = None


class DocumentUpdate(BaseModel):
    content: str
    title: str | None = Field(default=None, max_length=300)
    change_description: str | None = None
    expected_version_id: str | None = None


class DocumentOut(BaseModel):
    id: str
    chat_id: str | None = None
    title: str
    current_version_id: str | None = None
    content_preview: str | None = None
    word_count: int
    created_at: str
    updated_at: str


class DocumentDetail(DocumentOut):
    content: str
    version_number: int | None = None


class VersionOut(BaseModel):
    id: str
    document_id: str
    version_number: int
    content_preview: str | None = None
    change_description: str | None = None
    diff: str | None = None
    word_count: int
    created_by: CreatedBy
    created_at: str


class VersionDetail(VersionOut):
    content: str


class SaveOut(BaseModel):
    document: DocumentOut
    version: VersionOut


def _document_out(doc: Document) -> dict:
    return {
        "id": doc.id,
        "chat_id": doc.chat_id,
        "title": doc.title,
        "current_version_id": doc.current_version_id,
        "content_preview": doc.content_preview,
        "word_count": doc.word_count,
        "created_at": doc.created_at.isoformat(),
        "updated_at": doc.updated_at.isoformat(),
    }


def _version_out(version: DocumentVersion) -> dict:
    return {
        "id": version.id,
        "document_id": version.document_id,
        "version_number": version.version_number,
        "content_preview": version.content_preview,
        "change_description": version.change_description,
        "diff": version.diff,
        "word_count": version.word_count,
        "created_by": version.created_by,
        "created_at": version.created_at.isoformat(),
    }


def _save_out(saved: SaveResult) -> SaveOut:
    return SaveOut(
        document=DocumentOut(**_document_out(saved.document)),
        version=VersionOut(**_version_out(saved.version)),
    )


@router.post("", response_model=SaveOut)
async def create_document(
    body: DocumentCreate,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    """Create a document; its content becomes version 1."""
    try:
        saved = await documents.create(
            user_id, body.title, body.content, chat_id=body.chat_id, created_by=CreatedBy.USER,
        )
    except _DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return _save_out(saved)


@router.get("", response_model=list[DocumentOut])
async def list_documents(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    """List user's documents ordered by most recently updated."""
    return [DocumentOut(**_document_out(d)) for d in await documents.list_documents(user_id, limit)]


@router.get("/versions/{version_id}", response_model=VersionDetail)
async def get_version(
    version_id: str,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    found = await documents.get_version(version_id, user_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Version not found")
    return VersionDetail(**_version_out(found.version), content=found.content)


@router.post("/versions/{version_id}/restore", response_model=SaveOut)
async def restore_version(
    version_id: str,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    """Restore an old version by saving its content as a new version."""
    try:
        saved = await documents.restore_version(version_id, user_id)
    except _DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return _save_out(saved)


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    found = await documents.get(document_id, user_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentDetail(
        **_document_out(found.document),
        content=found.content,
        version_number=found.version_number,
    )


@router.put("/{document_id}", response_model=SaveOut)
async def update_document(
    document_id: str,
    body: DocumentUpdate,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    """Save new content as the next version.

    Pass ``expected_version_id`` to reject the write (409) if someone else
    saved in the meantime.
    """
    try:
        saved = await documents.update(
            document_id,
            user_id,
            body.content,
            change_description=body.change_description,
            created_by=CreatedBy.USER,
            expected_version_id=body.expected_version_id,
            title=body.title,
        )
    except _DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return _save_out(saved)


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    """Delete a document and every version."""
    try:
        await documents.delete(document_id, user_id)
    except _DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return {"ok": True}


@router.get("/{document_id}/versions", response_model=list[VersionOut])
async def list_versions(
    document_id: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    documents: DocumentService = Depends(get_document_service),
):
    try:
        versions = await documents.list_versions(document_id, user_id, limit)
    except _DOMAIN_ERRORS as e:
        raise to_http_error(e)
    return [VersionOut(**_version_out(v)) for v in versions]
