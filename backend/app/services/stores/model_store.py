"""
Model and routing-rule stores backed by Supabase.

Tables:
- models: one row per ModelDescriptor
- routing_rules: one row per RoutingRule (conditions as jsonb,
  target_model_ids as text[])

Reads are never cached: every routing decision sees current configuration.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from app.core.database import get_supabase_client
from app.core.errors import StoreUnavailableError
from app.core.logging import get_logger
from app.models.domain import ModelDescriptor, RoutingRule

logger = get_logger(__name__)

MODELS_TABLE = "models"
RULES_TABLE = "routing_rules"


def _by_priority(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Rows arrive in insertion order; the sort is stable, so equal
    # priorities keep first-inserted first.
    return sorted(rows, key=lambda row: row.get("priority", 0))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _SupabaseStore:
    store_name = "store"

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        if self._client is None:
            logger.error("store_db_connection_failed", store=self.store_name)
            raise StoreUnavailableError(self.store_name)
        return self._client

    def _list(self, table: str, active_only: bool) -> List[Dict[str, Any]]:
        query = self.client.table(table).select("*")
        if active_only:
            query = query.eq("is_active", True)
        response = query.order("created_at").execute()
        return _by_priority(response.data or [])

    def _get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        response = self.client.table(table).select("*").eq("id", row_id).limit(1).execute()
        return response.data[0] if response.data else None

    def _insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        now = _now()
        row = {**values, "created_at": now, "updated_at": now}
        response = self.client.table(table).insert(row).execute()
        return response.data[0]

    def _update(self, table: str, row_id: str, changes: Dict[str, Any]) -> bool:
        response = (
            self.client.table(table)
            .update({**changes, "updated_at": _now()})
            .eq("id", row_id)
            .execute()
        )
        return bool(response.data)

    def _delete(self, table: str, row_id: str) -> bool:
        response = self.client.table(table).delete().eq("id", row_id).execute()
        return bool(response.data)


class ModelStore(_SupabaseStore):
    """Model Store collaborator."""

    store_name = "model_store"

    def list_active_models(self) -> List[ModelDescriptor]:
        """Active models, ascending priority."""
        return [ModelDescriptor.model_validate(row) for row in self._list(MODELS_TABLE, active_only=True)]

    def list_models(self) -> List[ModelDescriptor]:
        return [ModelDescriptor.model_validate(row) for row in self._list(MODELS_TABLE, active_only=False)]

    def get_model_by_id(self, model_id: str) -> Optional[ModelDescriptor]:
        row = self._get(MODELS_TABLE, model_id)
        return ModelDescriptor.model_validate(row) if row else None

    def create_model(self, values: Dict[str, Any]) -> ModelDescriptor:
        row = self._insert(MODELS_TABLE, values)
        logger.info("model_created", model_id=row.get("id"), provider=row.get("provider"))
        return ModelDescriptor.model_validate(row)

    def update_model(self, model_id: str, changes: Dict[str, Any]) -> bool:
        updated = self._update(MODELS_TABLE, model_id, changes)
        logger.info("model_updated", model_id=model_id, updated=updated, fields=sorted(changes))
        return updated

    def delete_model(self, model_id: str) -> bool:
        deleted = self._delete(MODELS_TABLE, model_id)
        logger.info("model_deleted", model_id=model_id, deleted=deleted)
        return deleted

    def set_model_active(self, model_id: str, is_active: bool) -> bool:
        return self.update_model(model_id, {"is_active": is_active})


class RuleStore(_SupabaseStore):
    """Rule Store collaborator."""

    store_name = "rule_store"

    def list_active_rules(self) -> List[RoutingRule]:
        """Active rules, ascending priority."""
        return [RoutingRule.model_validate(row) for row in self._list(RULES_TABLE, active_only=True)]

    def list_rules(self) -> List[RoutingRule]:
        return [RoutingRule.model_validate(row) for row in self._list(RULES_TABLE, active_only=False)]

    def get_rule_by_id(self, rule_id: str) -> Optional[RoutingRule]:
        row = self._get(RULES_TABLE, rule_id)
        return RoutingRule.model_validate(row) if row else None

    def create_rule(self, values: Dict[str, Any]) -> RoutingRule:
        row = self._insert(RULES_TABLE, values)
        logger.info("routing_rule_created", rule_id=row.get("id"), priority=row.get("priority"))
        return RoutingRule.model_validate(row)

    def update_rule(self, rule_id: str, changes: Dict[str, Any]) -> bool:
        updated = self._update(RULES_TABLE, rule_id, changes)
        logger.info("routing_rule_updated", rule_id=rule_id, updated=updated, fields=sorted(changes))
        return updated

    def delete_rule(self, rule_id: str) -> bool:
        deleted = self._delete(RULES_TABLE, rule_id)
        logger.info("routing_rule_deleted", rule_id=rule_id, deleted=deleted)
        return deleted

    def set_rule_active(self, rule_id: str, is_active: bool) -> bool:
        return self.update_rule(rule_id, {"is_active": is_active})


_model_store: Optional[ModelStore] = None
_rule_store: Optional[RuleStore] = None


def get_model_store() -> ModelStore:
    global _model_store
    if _model_store is None:
        _model_store = ModelStore()
    return _model_store


def get_rule_store() -> RuleStore:
    global _rule_store
    if _rule_store is None:
        _rule_store = RuleStore()
    return _rule_store
