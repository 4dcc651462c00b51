"""
Tests for rule-driven model selection.

Tests verify:
- Rules are walked in ascending priority; the first full match wins
- A matching rule whose targets are all inactive is skipped
- The lowest-priority active target of the winning rule is chosen
- With no match the lowest-priority active model is the default
- No active models -> NoActiveModelsError
- Same inputs -> same model
"""
import pytest

from app.core.errors import NoActiveModelsError
from app.models.domain import Caller
from app.services.routing.model_router import ModelRouter
from app.services.routing.query_classification import QueryClassifier

from fakes import InMemoryModelStore, InMemoryRuleStore, make_model, make_rule

SENSITIVE_QUERY = "Share the confidential revenue numbers"  # sensitivity 7
PLAIN_QUERY = "lunch options nearby"  # sensitivity 0


@pytest.fixture
def caller():
    return Caller(id="u-1", role="user", department_id="sales")


def build_router(models, rules=()):
    return ModelRouter(
        model_store=InMemoryModelStore(models),
        rule_store=InMemoryRuleStore(rules),
        classifier=QueryClassifier(),
    )


@pytest.mark.asyncio
async def test_sensitive_query_routes_to_local_only(caller):
    router = build_router(
        models=[
            make_model("gpt", priority=1),
            make_model("claude", priority=2),
            make_model("local-only", priority=50),
        ],
        rules=[make_rule("sensitive", [("sensitivity", ">", 5)], ["local-only"])],
    )

    model = await router.select_model(SENSITIVE_QUERY, caller)
    assert model.id == "local-only"


@pytest.mark.asyncio
async def test_default_is_lowest_priority_active_model(caller):
    router = build_router(
        models=[
            make_model("b", priority=20),
            make_model("a", priority=10),
            make_model("off", priority=1, is_active=False),
        ],
        rules=[make_rule("sensitive", [("sensitivity", ">", 5)], ["b"])],
    )

    model = await router.select_model(PLAIN_QUERY, caller)
    assert model.id == "a"


@pytest.mark.asyncio
async def test_rule_with_only_inactive_targets_is_skipped(caller):
    router = build_router(
        models=[
            make_model("general", priority=1),
            make_model("retired", priority=5, is_active=False),
            make_model("backup", priority=9),
        ],
        rules=[
            make_rule("first", [("sensitivity", ">", 5)], ["retired"], priority=1),
            make_rule("second", [("sensitivity", ">", 5)], ["backup"], priority=2),
        ],
    )

    model = await router.select_model(SENSITIVE_QUERY, caller)
    assert model.id == "backup"


@pytest.mark.asyncio
async def test_rules_are_walked_in_priority_order(caller):
    router = build_router(
        models=[make_model("m-low", priority=1), make_model("m-high", priority=2)],
        rules=[
            make_rule("late", [], ["m-low"], priority=50),
            make_rule("early", [], ["m-high"], priority=5),
        ],
    )

    model = await router.select_model(PLAIN_QUERY, caller)
    assert model.id == "m-high"


@pytest.mark.asyncio
async def test_lowest_priority_target_of_winning_rule(caller):
    router = build_router(
        models=[
            make_model("x", priority=1),
            make_model("t2", priority=30),
            make_model("t1", priority=20),
        ],
        rules=[make_rule("all", [], ["t2", "t1"])],
    )

    model = await router.select_model(PLAIN_QUERY, caller)
    assert model.id == "t1"


@pytest.mark.asyncio
async def test_inactive_rules_are_ignored(caller):
    router = build_router(
        models=[make_model("default", priority=1), make_model("special", priority=2)],
        rules=[make_rule("disabled", [], ["special"], is_active=False)],
    )

    model = await router.select_model(PLAIN_QUERY, caller)
    assert model.id == "default"


@pytest.mark.asyncio
async def test_caller_and_extra_context_conditions(caller):
    router = build_router(
        models=[make_model("default", priority=1), make_model("batch", priority=2)],
        rules=[make_rule("busy", [("current_load", ">=", 0.9), ("department_id", "=", "sales")], ["batch"])],
    )

    busy = await router.select_model(PLAIN_QUERY, caller, {"currentLoad": 0.95})
    quiet = await router.select_model(PLAIN_QUERY, caller, {"currentLoad": 0.2})

    assert busy.id == "batch"
    assert quiet.id == "default"


@pytest.mark.asyncio
async def test_no_active_models_raises(caller):
    router = build_router(
        models=[make_model("off", is_active=False)],
        rules=[make_rule("any", [], ["off"])],
    )

    with pytest.raises(NoActiveModelsError):
        await router.select_model(PLAIN_QUERY, caller)


@pytest.mark.asyncio
async def test_selection_is_deterministic(caller):
    router = build_router(
        models=[make_model("a", priority=5), make_model("b", priority=5), make_model("c", priority=1)],
        rules=[make_rule("tie", [("category", "=", "general")], ["a", "b"])],
    )

    picks = {(await router.select_model(PLAIN_QUERY, caller)).id for _ in range(5)}
    assert picks == {"a"}


@pytest.mark.asyncio
async def test_get_model_by_id(caller):
    router = build_router(models=[make_model("a"), make_model("off", is_active=False)])

    assert (await router.get_model_by_id("off")).id == "off"
    assert await router.get_model_by_id("missing") is None
