"""
Admin endpoints for model and routing-rule configuration.

GET/POST            /admin/models
GET/PUT/DELETE      /admin/models/{model_id}
PATCH               /admin/models/{model_id}/active
GET/POST            /admin/routing-rules
GET/PUT/DELETE      /admin/routing-rules/{rule_id}
PATCH               /admin/routing-rules/{rule_id}/active

All routes require the admin role. Model mutations clear the LLM client
cache so the next query builds clients from the new configuration. Rules
are read fresh per query and need no invalidation.
"""
import asyncio
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from app.core.logging import get_logger
from app.models.domain import Caller, ModelDescriptor, RoutingRule
from app.models.requests import (
    ActiveToggleRequest,
    ModelCreateRequest,
    ModelUpdateRequest,
    RoutingRuleCreateRequest,
    RoutingRuleUpdateRequest,
)
from app.routes.deps import require_admin
from app.services.llm.service import LLMService, get_llm_service
from app.services.stores.model_store import ModelStore, RuleStore, get_model_store, get_rule_store

logger = get_logger(__name__)

router = APIRouter()


def model_view(model: ModelDescriptor) -> Dict[str, Any]:
    """Model as returned to admins; the credential itself never leaves."""
    view = model.model_dump(mode="json", exclude={"api_key"})
    view["has_api_key"] = bool(model.api_key)
    return view


def _changes(body) -> Dict[str, Any]:
    changes = body.model_dump(mode="json", exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")
    return changes


def _model_not_found(model_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Model with ID {model_id} not found")


def _rule_not_found(rule_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Routing rule with ID {rule_id} not found")


# Models

@router.get("/models")
async def list_models(
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
) -> List[Dict[str, Any]]:
    models = await asyncio.to_thread(model_store.list_models)
    return [model_view(model) for model in models]


@router.post("/models", status_code=201)
async def create_model(
    body: ModelCreateRequest,
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
    llm: LLMService = Depends(get_llm_service),
) -> Dict[str, Any]:
    values = body.model_dump(mode="json", exclude_none=True)
    model = await asyncio.to_thread(model_store.create_model, values)
    llm.clear_client_cache()
    logger.info("admin_model_created", model_id=model.id, admin_id=admin.id)
    return model_view(model)


@router.get("/models/{model_id}")
async def get_model(
    model_id: str,
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
) -> Dict[str, Any]:
    model = await asyncio.to_thread(model_store.get_model_by_id, model_id)
    if model is None:
        raise _model_not_found(model_id)
    return model_view(model)


@router.put("/models/{model_id}")
async def update_model(
    model_id: str,
    body: ModelUpdateRequest,
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
    llm: LLMService = Depends(get_llm_service),
) -> Dict[str, Any]:
    changes = _changes(body)
    updated = await asyncio.to_thread(model_store.update_model, model_id, changes)
    if not updated:
        raise _model_not_found(model_id)
    llm.clear_client_cache()
    logger.info("admin_model_updated", model_id=model_id, admin_id=admin.id, fields=sorted(changes))

    model = await asyncio.to_thread(model_store.get_model_by_id, model_id)
    if model is None:
        raise _model_not_found(model_id)
    return model_view(model)


@router.delete("/models/{model_id}")
async def delete_model(
    model_id: str,
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
    llm: LLMService = Depends(get_llm_service),
) -> Dict[str, Any]:
    deleted = await asyncio.to_thread(model_store.delete_model, model_id)
    if not deleted:
        raise _model_not_found(model_id)
    llm.clear_client_cache()
    logger.info("admin_model_deleted", model_id=model_id, admin_id=admin.id)
    return {"status": "deleted", "id": model_id}


@router.patch("/models/{model_id}/active")
async def set_model_active(
    model_id: str,
    body: ActiveToggleRequest,
    admin: Caller = Depends(require_admin),
    model_store: ModelStore = Depends(get_model_store),
    llm: LLMService = Depends(get_llm_service),
) -> Dict[str, Any]:
    updated = await asyncio.to_thread(model_store.set_model_active, model_id, body.is_active)
    if not updated:
        raise _model_not_found(model_id)
    llm.clear_client_cache()
    logger.info("admin_model_toggled", model_id=model_id, is_active=body.is_active, admin_id=admin.id)
    return {"id": model_id, "is_active": body.is_active}


# Routing rules

@router.get("/routing-rules", response_model=List[RoutingRule])
async def list_rules(
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
):
    return await asyncio.to_thread(rule_store.list_rules)


@router.post("/routing-rules", response_model=RoutingRule, status_code=201)
async def create_rule(
    body: RoutingRuleCreateRequest,
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
):
    values = body.model_dump(mode="json", exclude_none=True)
    rule = await asyncio.to_thread(rule_store.create_rule, values)
    logger.info("admin_rule_created", rule_id=rule.id, admin_id=admin.id)
    return rule


@router.get("/routing-rules/{rule_id}", response_model=RoutingRule)
async def get_rule(
    rule_id: str,
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
):
    rule = await asyncio.to_thread(rule_store.get_rule_by_id, rule_id)
    if rule is None:
        raise _rule_not_found(rule_id)
    return rule


@router.put("/routing-rules/{rule_id}", response_model=RoutingRule)
async def update_rule(
    rule_id: str,
    body: RoutingRuleUpdateRequest,
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
):
    changes = _changes(body)
    updated = await asyncio.to_thread(rule_store.update_rule, rule_id, changes)
    if not updated:
        raise _rule_not_found(rule_id)
    logger.info("admin_rule_updated", rule_id=rule_id, admin_id=admin.id, fields=sorted(changes))

    rule = await asyncio.to_thread(rule_store.get_rule_by_id, rule_id)
    if rule is None:
        raise _rule_not_found(rule_id)
    return rule


@router.delete("/routing-rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
) -> Dict[str, Any]:
    deleted = await asyncio.to_thread(rule_store.delete_rule, rule_id)
    if not deleted:
        raise _rule_not_found(rule_id)
    logger.info("admin_rule_deleted", rule_id=rule_id, admin_id=admin.id)
    return {"status": "deleted", "id": rule_id}


@router.patch("/routing-rules/{rule_id}/active")
async def set_rule_active(
    rule_id: str,
    body: ActiveToggleRequest,
    admin: Caller = Depends(require_admin),
    rule_store: RuleStore = Depends(get_rule_store),
) -> Dict[str, Any]:
    updated = await asyncio.to_thread(rule_store.set_rule_active, rule_id, body.is_active)
    if not updated:
        raise _rule_not_found(rule_id)
    logger.info("admin_rule_toggled", rule_id=rule_id, is_active=body.is_active, admin_id=admin.id)
    return {"id": rule_id, "is_active": body.is_active}
