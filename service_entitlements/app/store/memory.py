"""
In-process document store.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from shared.logging import get_logger

from .base import Document


class InMemoryDocumentStore:
    """Dict-backed store keyed by collection then document id."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Document]]] = None):
        self.logger = get_logger("entitlements.store.memory")
        self._collections: Dict[str, Dict[str, Document]] = {}
        for collection, docs in (documents or {}).items():
            for document_id, data in docs.items():
                self.put_document(collection, document_id, data)

    async def start(self):
        self.logger.info("In-memory document store started")

    async def stop(self):
        pass

    def put_document(self, collection: str, document_id: str, data: Document):
        stored = copy.deepcopy(dict(data))
        stored["id"] = document_id
        self._collections.setdefault(collection, {})[document_id] = stored

    def delete_document(self, collection: str, document_id: str) -> bool:
        return self._collections.get(collection, {}).pop(document_id, None) is not None

    async def get_documents(self, collection: str, where: Mapping[str, Any]) -> List[Document]:
        docs = self._collections.get(collection, {}).values()
        return [
            copy.deepcopy(doc)
            for doc in docs
            if all(key in doc and doc[key] == value for key, value in where.items())
        ]

    async def get_document(self, collection: str, document_id: str) -> Optional[Document]:
        doc = self._collections.get(collection, {}).get(document_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def health_check(self) -> bool:
        return True
