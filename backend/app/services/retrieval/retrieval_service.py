"""
Document retrieval for RAG.

Two passes, both restricted by the caller's AccessFilter:
1. Full-text relevance search (score from the store, highest first)
2. Only if pass 1 returns nothing: case-insensitive keyword match on
   title/content/tags; every hit gets the fixed score FALLBACK_SCORE

Retrieval is a soft dependency: any store failure is logged and yields an
empty list, never an exception.
"""
import asyncio
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.core.logging import get_logger
from app.core.metrics import record_retrieval
from app.core.tracing import StatusCode, get_tracer, record_exception, set_span_attribute, set_span_status
from app.models.domain import Caller
from app.services.retrieval.snippets import extract_keywords, extract_snippet
from app.services.stores.document_store import AccessFilter, DocumentStore, get_document_store

logger = get_logger(__name__)

FALLBACK_SCORE = 0.5
DEFAULT_SOURCE = "internal"


class RetrievalResult(BaseModel):
    id: str
    title: str
    content: str
    snippet: str
    source: str = DEFAULT_SOURCE
    score: float


def _to_result(row: Dict[str, Any], query: str, score: float) -> RetrievalResult:
    content = row.get("content") or ""
    return RetrievalResult(
        id=str(row.get("id")),
        title=row.get("title") or "",
        content=content,
        snippet=extract_snippet(content, query),
        source=row.get("source") or DEFAULT_SOURCE,
        score=score,
    )


class RetrievalService:
    """Retrieval Scorer."""

    def __init__(self, document_store: Optional[DocumentStore] = None):
        self.document_store = document_store or get_document_store()

    async def retrieve_documents(
        self,
        query: str,
        caller: Caller,
        accessible_doc_ids: Optional[List[str]] = None,
        limit: int = 5,
    ) -> List[RetrievalResult]:
        """
        Retrieve up to `limit` documents relevant to the query.

        Args:
            query: User query
            caller: Identity used for the access filter
            accessible_doc_ids: Optional allowlist of document ids
            limit: Maximum number of documents

        Returns:
            Results sorted by score descending (possibly empty)
        """
        tracer = get_tracer()
        with tracer.start_as_current_span("retrieval.retrieve_documents"):
            set_span_attribute("retrieval.limit", limit)
            access = AccessFilter.for_caller(caller, accessible_doc_ids)

            try:
                rows = await asyncio.to_thread(self.document_store.text_search, query, access, limit)
                results = [_to_result(row, query, float(row.get("score") or 0.0)) for row in rows]
                results.sort(key=lambda result: result.score, reverse=True)
                result_pass = "text"

                if not results:
                    keywords = extract_keywords(query)
                    rows = await asyncio.to_thread(
                        self.document_store.keyword_search, keywords, access, limit
                    )
                    results = [_to_result(row, query, FALLBACK_SCORE) for row in rows]
                    result_pass = "fallback" if results else "empty"

            except Exception as e:
                record_exception(e)
                set_span_status(StatusCode.ERROR, str(e))
                record_retrieval("error")
                logger.error(
                    "retrieval_failed",
                    user_id=caller.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return []

            results = results[:limit]
            set_span_attribute("retrieval.results_count", len(results))
            set_span_attribute("retrieval.pass", result_pass)
            record_retrieval(result_pass)
            logger.info(
                "retrieval_completed",
                user_id=caller.id,
                result_pass=result_pass,
                results_count=len(results),
                allowlist_size=len(accessible_doc_ids) if accessible_doc_ids else 0,
            )
            return results


_retrieval_service: Optional[RetrievalService] = None


def get_retrieval_service() -> RetrievalService:
    global _retrieval_service
    if _retrieval_service is None:
        _retrieval_service = RetrievalService()
    return _retrieval_service
