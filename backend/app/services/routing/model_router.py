"""
Model routing.

Picks exactly one target model for a query:
1. Classify the query
2. Load active rules and active models (ascending priority, fresh per query)
3. The first rule whose conditions all hold AND that names at least one
   active model wins; its lowest-priority active target is returned
4. Otherwise the lowest-priority active model is the default

Rules whose targets are all inactive are skipped, not treated as a match.
"""
import asyncio
from typing import Any, Dict, List, Optional

from app.core.errors import NoActiveModelsError
from app.core.logging import get_logger
from app.core.metrics import record_classification, record_routing_decision
from app.core.tracing import get_tracer, set_span_attribute
from app.models.domain import Caller, ModelDescriptor, RoutingRule
from app.services.routing.conditions import RoutingContext, matches_rule
from app.services.routing.query_classification import QueryClassifier, get_query_classifier
from app.services.stores.model_store import ModelStore, RuleStore, get_model_store, get_rule_store

logger = get_logger(__name__)


def _lowest_priority(models: List[ModelDescriptor]) -> ModelDescriptor:
    # min() keeps the first of equal priorities
    return min(models, key=lambda model: model.priority)


class ModelRouter:
    """Priority-ordered, rule-driven model selection."""

    def __init__(
        self,
        model_store: Optional[ModelStore] = None,
        rule_store: Optional[RuleStore] = None,
        classifier: Optional[QueryClassifier] = None,
    ):
        self.model_store = model_store or get_model_store()
        self.rule_store = rule_store or get_rule_store()
        self.classifier = classifier or get_query_classifier()

    async def get_model_by_id(self, model_id: str) -> Optional[ModelDescriptor]:
        return await asyncio.to_thread(self.model_store.get_model_by_id, model_id)

    async def select_model(
        self,
        query: str,
        caller: Optional[Caller],
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> ModelDescriptor:
        """
        Select the target model for a query.

        Raises:
            NoActiveModelsError: if no model is active
        """
        tracer = get_tracer()
        with tracer.start_as_current_span("model_router.select_model"):
            classification = self.classifier.classify(query)
            record_classification(classification.complexity, classification.sensitivity)

            rules = await asyncio.to_thread(self.rule_store.list_active_rules)
            models = await asyncio.to_thread(self.model_store.list_active_models)

            if not models:
                logger.error("model_router_no_active_models", rule_count=len(rules))
                raise NoActiveModelsError()

            ctx = RoutingContext(
                query=query,
                classification=classification,
                caller=caller,
                extra=extra_context or {},
            )
            model, rule = self.choose(ctx, rules, models)

            set_span_attribute("routing.model_id", model.id)
            set_span_attribute("routing.rule_id", rule.id if rule else "")
            record_routing_decision(model.id, "rule" if rule else "default")

            logger.info(
                "model_router_model_selected",
                model_id=model.id,
                model_name=model.model_name,
                rule_id=rule.id if rule else None,
                category=classification.category,
                complexity=classification.complexity,
                sensitivity=classification.sensitivity,
            )
            return model

    def choose(
        self,
        ctx: RoutingContext,
        rules: List[RoutingRule],
        models: List[ModelDescriptor],
    ) -> tuple[ModelDescriptor, Optional[RoutingRule]]:
        """
        Deterministic rule walk over already-loaded rules and models.

        Returns:
            (selected model, matching rule or None for the default)
        """
        active_models = sorted((m for m in models if m.is_active), key=lambda m: m.priority)
        if not active_models:
            raise NoActiveModelsError()

        ordered_rules = sorted((r for r in rules if r.is_active), key=lambda r: r.priority)

        for rule in ordered_rules:
            if not matches_rule(rule, ctx):
                continue

            targets = [m for m in active_models if m.id in rule.target_model_ids]
            if targets:
                return _lowest_priority(targets), rule

            logger.info(
                "model_router_rule_skipped_no_active_targets",
                rule_id=rule.id,
                target_model_ids=rule.target_model_ids,
            )

        return active_models[0], None


_model_router: Optional[ModelRouter] = None


def get_model_router() -> ModelRouter:
    global _model_router
    if _model_router is None:
        _model_router = ModelRouter()
    return _model_router
