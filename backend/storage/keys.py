"""Blob storage key scheme."""


def chat_storage_key(user_id: str, chat_id: str) -> str:
    return f"chats/{user_id}/{chat_id}.json"


def document_storage_key(user_id: str, document_id: str) -> str:
    """Key of the blob mirroring a document's current content."""
    return f"documents/{user_id}/{document_id}.json"


def document_version_storage_key(user_id: str, document_id: str, version_number: int) -> str:
    """Key of the immutable blob holding one version's full content."""
    return f"documents/{user_id}/{document_id}/versions/{version_number}.json"
