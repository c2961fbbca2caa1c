"""Document version store.

A document is a metadata row plus blobs: one immutable blob per version and
one blob mirroring the current content.  Every mutation writes a new
version, never edits an old one, and moves the document's current-version
pointer in the same transaction that inserts the version row.

Write order for each mutation is version blob, then document blob, then the
database transaction.  The version blob is created only if its key is free,
so two writers that picked the same version number cannot both get past the
first step.  A failed later step removes the claimed version blob again; a
crash between steps leaves at worst an orphan blob, which a later writer
may reclaim once it is older than ``orphan_blob_grace_seconds`` and still has
no version row.  ``get`` notices a document blob that is ahead of the row
(its versionId does not match ``current_version_id``) and reads the current
version's blob instead.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from document.diff import diff as compute_diff
from document.diff import render_html
from document.exceptions import DocumentNotFoundError, VersionConflictError, VersionNotFoundError
from document.locks import DocumentLocks
from document.sections import count_words
from models import CreatedBy, Document, DocumentVersion
from storage.blob import BlobExistsError, BlobStore, StorageError
from storage.keys import document_storage_key, document_version_storage_key

logger = logging.getLogger(__name__)

# (new content, change description), or None to leave the document alone.
Transform = Callable[[str], "tuple[str, str] | None"]


@dataclass
class DocumentWithContent:
    document: Document
    content: str
    version_number: int | None = None


@dataclass
class VersionWithContent:
    version: DocumentVersion
    content: str


@dataclass
class SaveResult:
    document: Document
    version: DocumentVersion


class DocumentService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: BlobStore,
        settings,
        locks: DocumentLocks | None = None,
    ):
        self._session_factory = session_factory
        self.storage = storage
        self.settings = settings
        self.locks = locks or DocumentLocks(timeout=settings.document_lock_timeout_seconds)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _document_preview(self, content: str) -> str:
        return content[: self.settings.document_preview_chars].strip()

    def _version_preview(self, content: str) -> str:
        return content[: self.settings.version_preview_chars].strip()

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    async def _owned(self, session: AsyncSession, document_id: str, user_id: str) -> Document | None:
        result = await session.execute(
            select(Document).where(Document.id == document_id, Document.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _owned_version(
        self, session: AsyncSession, version_id: str, user_id: str
    ) -> DocumentVersion | None:
        result = await session.execute(
            select(DocumentVersion)
            .join(Document, DocumentVersion.document_id == Document.id)
            .where(DocumentVersion.id == version_id, Document.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def _write_blobs(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        document_id: str,
        version_id: str,
        version_number: int,
        title: str,
        content: str,
        word_count: int,
        created_by: CreatedBy,
        change_description: str | None = None,
        diff: str | None = None,
    ) -> tuple[str, str]:
        """Claim the version blob, then mirror the content into the document blob.

        The version blob is written create-only, so a writer that lost the
        race for ``version_number`` fails here with VersionConflictError
        before it can touch any blob the winner depends on.
        """
        version_key = document_version_storage_key(user_id, document_id, version_number)
        document_key = document_storage_key(user_id, document_id)
        now = self._now_iso()
        version_blob = {
            "versionId": version_id,
            "documentId": document_id,
            "versionNumber": version_number,
            "title": title,
            "content": content,
            "wordCount": word_count,
            "createdBy": created_by.value,
            "createdAt": now,
        }
        if change_description is not None:
            version_blob["changeDescription"] = change_description
        if diff is not None:
            version_blob["diff"] = diff
        await self._claim_version_blob(
            session, version_key, json.dumps(version_blob), document_id, version_number
        )

        try:
            await self.storage.write(document_key, json.dumps({
                "documentId": document_id,
                "versionId": version_id,
                "versionNumber": version_number,
                "title": title,
                "content": content,
                "wordCount": word_count,
                "updatedAt": now,
            }))
        except StorageError:
            await self._discard_version_blob(version_key, version_id)
            raise
        return version_key, document_key

    async def _claim_version_blob(
        self, session: AsyncSession, key: str, body: str, document_id: str, version_number: int
    ) -> None:
        try:
            await self.storage.create(key, body)
            return
        except BlobExistsError as e:
            if not await self._is_stale_orphan(session, key, document_id, version_number):
                raise VersionConflictError(
                    f"Version {version_number} of document {document_id} is already taken"
                ) from e
        logger.warning(f"Reclaiming orphaned version blob {key} left by an unfinished write")
        await self.storage.write(key, body)

    async def _is_stale_orphan(
        self, session: AsyncSession, key: str, document_id: str, version_number: int
    ) -> bool:
        """True if ``key`` has no version row and is older than the orphan grace period."""
        taken = await session.scalar(
            select(DocumentVersion.id).where(
                DocumentVersion.document_id == document_id,
                DocumentVersion.version_number == version_number,
            )
        )
        if taken is not None:
            return False
        try:
            created_at = datetime.fromisoformat((await self._read_blob(key))["createdAt"])
        except (StorageError, KeyError, TypeError, ValueError):
            return False
        age = (datetime.now(timezone.utc) - created_at).total_seconds()
        return age > self.settings.orphan_blob_grace_seconds

    async def _discard_version_blob(self, key: str, version_id: str) -> None:
        """Best-effort removal of a version blob this writer claimed but never committed."""
        try:
            data = await self._read_blob(key)
            if data.get("versionId") == version_id:
                await self.storage.delete(key)
        except StorageError:
            logger.warning(f"Failed to discard uncommitted version blob {key}", exc_info=True)

    async def _read_blob(self, key: str) -> dict:
        raw = await self.storage.read(key)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt blob at {key}") from e

    async def _current_version(self, session: AsyncSession, doc: Document) -> DocumentVersion | None:
        if doc.current_version_id is None:
            return None
        return await session.get(DocumentVersion, doc.current_version_id)

    async def _read_current(self, session: AsyncSession, doc: Document) -> tuple[str, DocumentVersion | None]:
        """Current content of ``doc``, trusting the document blob only if it is in sync."""
        version = await self._current_version(session, doc)
        try:
            data = await self._read_blob(doc.storage_key)
            if data.get("versionId") == doc.current_version_id:
                return data.get("content", ""), version
            logger.warning(
                f"Document blob for {doc.id} is at {data.get('versionId')}, "
                f"row points at {doc.current_version_id}; reading version blob"
            )
        except StorageError as e:
            if version is None:
                raise
            logger.warning(f"Document blob for {doc.id} unreadable ({e}); reading version blob")

        if version is None:
            raise StorageError(f"Document {doc.id} has no readable content")
        data = await self._read_blob(version.storage_key)
        return data.get("content", ""), version

    async def _next_version_number(self, session: AsyncSession, document_id: str) -> int:
        result = await session.execute(
            select(func.max(DocumentVersion.version_number)).where(
                DocumentVersion.document_id == document_id
            )
        )
        return (result.scalar() or 0) + 1

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        title: str,
        content: str,
        chat_id: str | None = None,
        change_description: str = "Initial version",
        created_by: CreatedBy = CreatedBy.ASSISTANT,
    ) -> SaveResult:
        """Create a document with version 1."""
        document_id = str(uuid.uuid4())
        version_id = str(uuid.uuid4())
        word_count = count_words(content)
        async with self._session_factory() as session:
            version_key, document_key = await self._write_blobs(
                session,
                user_id=user_id,
                document_id=document_id,
                version_id=version_id,
                version_number=1,
                title=title,
                content=content,
                word_count=word_count,
                created_by=created_by,
                change_description=change_description,
            )
            doc = Document(
                id=document_id,
                chat_id=chat_id,
                user_id=user_id,
                title=title,
                current_version_id=version_id,
                storage_key=document_key,
                content_preview=self._document_preview(content),
                word_count=word_count,
            )
            session.add(doc)
            await session.flush()
            version = DocumentVersion(
                id=version_id,
                document_id=document_id,
                version_number=1,
                storage_key=version_key,
                content_preview=self._version_preview(content),
                change_description=change_description,
                word_count=word_count,
                created_by=created_by,
            )
            session.add(version)
            try:
                await session.commit()
            except Exception:
                await self._discard_version_blob(version_key, version_id)
                raise

        logger.info(f"Created document {document_id} ({word_count} words) for user {user_id}")
        return SaveResult(document=doc, version=version)

    async def update(
        self,
        document_id: str,
        user_id: str,
        content: str,
        change_description: str | None = None,
        created_by: CreatedBy = CreatedBy.ASSISTANT,
        diff: str | None = None,
        expected_version_id: str | None = None,
        title: str | None = None,
    ) -> SaveResult:
        """Write ``content`` as a new version and make it current.

        Raises:
            DocumentNotFoundError: No such document for this user.
            VersionConflictError: ``expected_version_id`` is stale, or a
                concurrent writer took the version number.
            StorageError: A blob write failed; the row is left untouched.
        """
        async with self.locks.hold(document_id):
            return await self._update_locked(
                document_id, user_id, content, change_description, created_by,
                diff, expected_version_id, title,
            )

    async def _update_locked(
        self,
        document_id: str,
        user_id: str,
        content: str,
        change_description: str | None,
        created_by: CreatedBy,
        diff: str | None,
        expected_version_id: str | None,
        title: str | None,
    ) -> SaveResult:
        async with self._session_factory() as session:
            doc = await self._owned(session, document_id, user_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            if expected_version_id is not None and doc.current_version_id != expected_version_id:
                raise VersionConflictError(
                    f"Document {document_id} is at {doc.current_version_id}, "
                    f"expected {expected_version_id}"
                )

            if diff is None:
                try:
                    previous, _ = await self._read_current(session, doc)
                    diff = render_html(compute_diff(previous, content))
                except StorageError:
                    logger.warning(f"Could not read previous content of {document_id}; storing no diff")

            version_number = await self._next_version_number(session, document_id)
            version_id = str(uuid.uuid4())
            new_title = title or doc.title
            word_count = count_words(content)
            version_key, _ = await self._write_blobs(
                session,
                user_id=user_id,
                document_id=document_id,
                version_id=version_id,
                version_number=version_number,
                title=new_title,
                content=content,
                word_count=word_count,
                created_by=created_by,
                change_description=change_description,
                diff=diff,
            )

            version = DocumentVersion(
                id=version_id,
                document_id=document_id,
                version_number=version_number,
                storage_key=version_key,
                content_preview=self._version_preview(content),
                change_description=change_description,
                diff=diff,
                word_count=word_count,
                created_by=created_by,
            )
            session.add(version)
            doc.current_version_id = version_id
            doc.title = new_title
            doc.content_preview = self._document_preview(content)
            doc.word_count = word_count
            doc.updated_at = datetime.now(timezone.utc)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                await self._discard_version_blob(version_key, version_id)
                raise VersionConflictError(
                    f"Version {version_number} of document {document_id} already exists"
                ) from e
            except Exception:
                await self._discard_version_blob(version_key, version_id)
                raise

        logger.info(f"Saved document {document_id} version {version_number}")
        return SaveResult(document=doc, version=version)

    async def edit(
        self,
        document_id: str,
        user_id: str,
        transform: Transform,
        created_by: CreatedBy = CreatedBy.ASSISTANT,
    ) -> SaveResult | None:
        """Read the current content, transform it and save, all under the document lock.

        ``transform`` returns (new content, description) or None to skip the
        write; in that case nothing is persisted and None is returned.
        """
        async with self.locks.hold(document_id):
            async with self._session_factory() as session:
                doc = await self._owned(session, document_id, user_id)
                if doc is None:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
                current, _ = await self._read_current(session, doc)

            outcome = transform(current)
            if outcome is None:
                return None
            new_content, description = outcome
            return await self._update_locked(
                document_id, user_id, new_content, description, created_by,
                render_html(compute_diff(current, new_content)), None, None,
            )

    async def get(self, document_id: str, user_id: str) -> DocumentWithContent | None:
        """Document row plus current content, or None if absent, foreign or unreadable."""
        async with self._session_factory() as session:
            doc = await self._owned(session, document_id, user_id)
            if doc is None:
                return None
            try:
                content, version = await self._read_current(session, doc)
            except StorageError:
                logger.error(f"Failed to read content of document {document_id}", exc_info=True)
                return None
        return DocumentWithContent(
            document=doc,
            content=content,
            version_number=version.version_number if version else None,
        )

    async def get_version(self, version_id: str, user_id: str) -> VersionWithContent | None:
        async with self._session_factory() as session:
            version = await self._owned_version(session, version_id, user_id)
        if version is None:
            return None
        try:
            data = await self._read_blob(version.storage_key)
        except StorageError:
            logger.error(f"Failed to read version {version_id}", exc_info=True)
            return None
        return VersionWithContent(version=version, content=data.get("content", ""))

    async def list_versions(self, document_id: str, user_id: str, limit: int = 50) -> list[DocumentVersion]:
        """Versions of a document, newest first."""
        async with self._session_factory() as session:
            if await self._owned(session, document_id, user_id) is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            result = await session.execute(
                select(DocumentVersion)
                .where(DocumentVersion.document_id == document_id)
                .order_by(DocumentVersion.version_number.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def restore_version(self, version_id: str, user_id: str) -> SaveResult:
        """Make an old version's content current again, as a new version."""
        async with self._session_factory() as session:
            version = await self._owned_version(session, version_id, user_id)
        if version is None:
            raise VersionNotFoundError(f"Version {version_id} not found")

        data = await self._read_blob(version.storage_key)
        result = await self.update(
            version.document_id,
            user_id,
            data.get("content", ""),
            change_description=f"Restored from version {version.version_number}",
            created_by=CreatedBy.USER,
        )
        logger.info(
            f"Restored document {version.document_id} to version {version.version_number} "
            f"as version {result.version.version_number}"
        )
        return result

    async def delete(self, document_id: str, user_id: str) -> None:
        """Delete a document, its versions and (best effort) their blobs."""
        async with self._session_factory() as session:
            doc = await self._owned(session, document_id, user_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {document_id} not found")
            result = await session.execute(
                select(DocumentVersion.storage_key).where(DocumentVersion.document_id == document_id)
            )
            keys = [doc.storage_key, *result.scalars().all()]

            for key in keys:
                try:
                    await self.storage.delete(key)
                except StorageError:
                    logger.warning(f"Failed to delete blob {key}", exc_info=True)

            await session.execute(
                sa_delete(DocumentVersion).where(DocumentVersion.document_id == document_id)
            )
            await session.delete(doc)
            await session.commit()

        logger.info(f"Deleted document {document_id} ({len(keys) - 1} versions)")

    async def list_documents(self, user_id: str, limit: int = 50) -> list[Document]:
        """A user's documents, most recently updated first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.user_id == user_id)
                .order_by(Document.updated_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
