"""
Document store backed by Supabase.

Full-text relevance search goes through the `search_documents(search_query)`
Postgres function, which returns document rows plus a `score` column
(ts_rank over the content search vector).

Keyword search goes through `keyword_search_documents(keywords text[])`,
which returns the rows where any keyword matches title, content or one of
the tags with ILIKE '%keyword%'. Tags are a text[] column, and PostgREST
array containment (`cs`) is case-sensitive, so the match lives in SQL.

Both searches enforce the same AccessFilter server-side.
"""
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from supabase import Client

from app.core.database import get_supabase_client
from app.core.errors import StoreUnavailableError
from app.core.logging import get_logger
from app.models.domain import Caller

logger = get_logger(__name__)

SEARCH_FUNCTION = "search_documents"
KEYWORD_FUNCTION = "keyword_search_documents"

# Characters with meaning inside a PostgREST or=(...) expression
_POSTGREST_RESERVED = re.compile(r'[,.:()"\\{}*]')


def _pg_value(value: str) -> str:
    if _POSTGREST_RESERVED.search(value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


class AccessFilter(BaseModel):
    """
    Which documents a caller may see.

    Documents must be active. Non-admin callers additionally need one of:
    public, owned by the caller, shared with the caller, or in the caller's
    department. An explicit id allowlist narrows the result further.
    """

    model_config = ConfigDict(frozen=True)

    caller_id: str
    is_admin: bool = False
    department_id: Optional[str] = None
    allowed_ids: Optional[List[str]] = None

    @classmethod
    def for_caller(cls, caller: Caller, allowed_ids: Optional[List[str]] = None) -> "AccessFilter":
        return cls(
            caller_id=caller.id,
            is_admin=caller.is_admin,
            department_id=caller.department_id,
            allowed_ids=list(allowed_ids) if allowed_ids else None,
        )

    def ownership_clause(self) -> Optional[str]:
        """PostgREST or= expression for the ownership rule (None for admins)."""
        if self.is_admin:
            return None
        caller = _pg_value(self.caller_id)
        parts = [
            "is_public.eq.true",
            f"owner_id.eq.{caller}",
            f"shared_with.cs.{{{caller}}}",
        ]
        if self.department_id:
            parts.append(f"department_id.eq.{_pg_value(self.department_id)}")
        return ",".join(parts)

    def matches(self, doc: Dict[str, Any]) -> bool:
        """Same rule as ownership_clause(), evaluated in Python."""
        if not doc.get("is_active"):
            return False
        if self.allowed_ids is not None and str(doc.get("id")) not in self.allowed_ids:
            return False
        if self.is_admin:
            return True
        return bool(
            doc.get("is_public")
            or doc.get("owner_id") == self.caller_id
            or self.caller_id in (doc.get("shared_with") or [])
            or (self.department_id and doc.get("department_id") == self.department_id)
        )


class DocumentStore:
    """Document Store collaborator."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            logger.error("store_db_connection_failed", store="document_store")
            raise StoreUnavailableError("document_store")
        return self._client

    def _apply_access(self, query, access: AccessFilter):
        query = query.eq("is_active", True)
        clause = access.ownership_clause()
        if clause:
            query = query.or_(clause)
        if access.allowed_ids:
            query = query.in_("id", access.allowed_ids)
        return query

    def text_search(self, query: str, access: AccessFilter, limit: int) -> List[Dict[str, Any]]:
        """Full-text relevance search, highest score first."""
        request = self.client.rpc(SEARCH_FUNCTION, {"search_query": query})
        request = self._apply_access(request, access)
        response = request.order("score", desc=True).limit(limit).execute()
        return response.data or []

    def keyword_search(self, words: List[str], access: AccessFilter, limit: int) -> List[Dict[str, Any]]:
        """Case-insensitive match of any word against title, content or tags."""
        if not words:
            return []

        request = self.client.rpc(KEYWORD_FUNCTION, {"keywords": list(words)})
        request = self._apply_access(request, access)
        response = request.limit(limit).execute()
        return response.data or []


_document_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    global _document_store
    if _document_store is None:
        _document_store = DocumentStore()
    return _document_store
