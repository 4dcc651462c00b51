"""
RAG endpoints.

POST /rag/query     retrieve documents, route (or pin) a model, answer
GET  /rag/models    models a client may pin ("auto" = let the router choose)
POST /rag/classify  classifier diagnostics for a query
"""
import asyncio
import os
import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.core.logging import get_logger
from app.models.domain import Caller, QueryClassification
from app.models.requests import ClassifyRequest, RagQueryRequest
from app.models.responses import ModelSummary, RagQueryResponse, SourceDoc, TokenUsage
from app.routes.deps import get_caller
from app.services.llm.service import LLMService, get_llm_service
from app.services.retrieval import RetrievalService, get_retrieval_service
from app.services.routing import QueryClassifier, get_query_classifier
from app.services.stores.model_store import ModelStore, get_model_store

logger = get_logger(__name__)

router = APIRouter()

AUTO_MODEL_ID = "auto"
DEFAULT_RETRIEVAL_LIMIT = 5


def get_retrieval_limit() -> int:
    return int(os.getenv("RETRIEVAL_DEFAULT_LIMIT", str(DEFAULT_RETRIEVAL_LIMIT)) or DEFAULT_RETRIEVAL_LIMIT)


@router.post("/query", response_model=RagQueryResponse)
async def rag_query(
    body: RagQueryRequest,
    caller: Caller = Depends(get_caller),
    retrieval: RetrievalService = Depends(get_retrieval_service),
    llm: LLMService = Depends(get_llm_service),
):
    """
    Answer a query over the documents the caller may see.

    Retrieval failures degrade to an answer without context; model
    resolution and provider failures surface as errors.
    """
    start_time = time.time()
    query = body.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query must not be empty")

    logger.info(
        "rag_query_started",
        query_length=len(query),
        model_id=body.model_id,
        allowlist_size=len(body.accessible_doc_ids or []),
    )

    docs = await retrieval.retrieve_documents(
        query,
        caller,
        accessible_doc_ids=body.accessible_doc_ids,
        limit=get_retrieval_limit(),
    )
    context = [doc.content for doc in docs]

    if body.model_id and body.model_id != AUTO_MODEL_ID:
        result = await llm.query_with_model(
            body.model_id,
            query,
            context=context,
            system_prompt=body.system_prompt,
            user=caller.id,
            temperature=body.temperature,
            max_tokens=body.max_tokens,
        )
    else:
        result = await llm.execute_query(
            query,
            context,
            caller,
            system_prompt=body.system_prompt,
            extra_context=body.extra_context,
            temperature=body.temperature,
            max_tokens=body.max_tokens,
        )

    time_taken_ms = int((time.time() - start_time) * 1000)
    logger.info(
        "rag_query_completed",
        model_id=result.model_id,
        source_docs=len(docs),
        total_tokens=result.total_tokens,
        time_taken_ms=time_taken_ms,
    )

    return RagQueryResponse(
        response=result.text,
        model=result.model,
        model_id=result.model_id,
        source_docs=[
            SourceDoc(id=doc.id, title=doc.title, snippet=doc.snippet, source=doc.source, score=doc.score)
            for doc in docs
        ],
        tokens=TokenUsage(
            total=result.total_tokens,
            prompt=result.prompt_tokens,
            completion=result.completion_tokens,
        ),
        time_taken_ms=time_taken_ms,
    )


@router.get("/models", response_model=List[ModelSummary])
async def list_models(
    caller: Caller = Depends(get_caller),
    model_store: ModelStore = Depends(get_model_store),
):
    """Active models plus the "auto" entry."""
    models = await asyncio.to_thread(model_store.list_active_models)
    summaries = [
        ModelSummary(
            id=AUTO_MODEL_ID,
            name="Auto (routed)",
            provider="router",
            kind=AUTO_MODEL_ID,
            capabilities=[],
        )
    ]
    summaries.extend(
        ModelSummary(
            id=model.id,
            name=model.name,
            provider=model.provider,
            kind=model.kind.value,
            capabilities=list(model.capabilities),
        )
        for model in models
    )
    return summaries


@router.post("/classify", response_model=QueryClassification)
async def classify_query(
    body: ClassifyRequest,
    caller: Caller = Depends(get_caller),
    classifier: QueryClassifier = Depends(get_query_classifier),
):
    return classifier.classify(body.query)
