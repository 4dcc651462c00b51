"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends

from app.core.database import is_supabase_configured
from app.core.logging import get_logger
from app.services.llm.service import LLMService, get_llm_service
from app.services.routing import QueryClassifier, get_query_classifier

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/stores")
async def stores_health(
    classifier: QueryClassifier = Depends(get_query_classifier),
    llm: LLMService = Depends(get_llm_service),
):
    """
    Health of the routing collaborators.

    Returns:
        - supabase_configured: whether SUPABASE_URL and a key are set
        - classifier_tables: "file" or "builtin" (file load failed)
        - cached_clients: number of provider clients in the cache
    """
    classifier.initialize()
    supabase_configured = is_supabase_configured()

    response = {
        "status": "ok" if supabase_configured else "unavailable",
        "supabase_configured": supabase_configured,
        "classifier_tables": "builtin" if classifier.using_builtin_tables else "file",
        "cached_clients": len(llm.cached_model_ids),
    }
    if not supabase_configured:
        response["message"] = "Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY."
    return response
