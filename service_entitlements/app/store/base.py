"""
Document store protocol consumed by the limit checker and subscription resolver.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol

Document = Dict[str, Any]


class DocumentStore(Protocol):
    """Narrow read capability over a document database.

    Implementations raise ``shared.errors.DocumentStoreError`` when the
    backing store cannot be read.
    """

    async def get_documents(self, collection: str, where: Mapping[str, Any]) -> List[Document]:
        """All documents in ``collection`` whose fields equal every value in ``where``."""
        ...

    async def get_document(self, collection: str, document_id: str) -> Optional[Document]:
        """A single document by id, or None."""
        ...

    async def health_check(self) -> bool:
        ...
