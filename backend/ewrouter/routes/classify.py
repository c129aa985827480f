"""
Classification endpoints.

POST /classify                {"query": "..."}
POST /classify/verification   {"query": "...", "systems": [...], "confidence": 0.9, ...}
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from ewrouter.core.logging import get_logger
from ewrouter.models.classification import ClassificationResult, VerificationError
from ewrouter.services.classification.classifier import get_query_classifier

logger = get_logger(__name__)

router = APIRouter()


class ClassifyRequest(BaseModel):
    """Classification request model."""
    query: str = Field(..., description="Free-text engineering question")


@router.post("", response_model=ClassificationResult)
def classify(request: ClassifyRequest):
    """
    Classify a query into systems, DB domains, BE clusters and SE clusters.

    Low-confidence results carry needs_llm_verification=true and a
    verification_prompt; zero-evidence queries are not an error.
    """
    return get_query_classifier().classify(request.query)


@router.post("/verification", response_model=ClassificationResult)
def record_verification(body: Dict[str, Any] = Body(...)):
    """
    Record an LLM verification of a previous fast-path classification.

    The verified result is served from the pattern cache on the next
    identical query.
    """
    query = body.get("query")
    if not isinstance(query, str):
        logger.warning("verification_query_missing")
        raise HTTPException(status_code=400, detail="Field 'query' is required")

    payload = {k: v for k, v in body.items() if k != "query"}
    try:
        return get_query_classifier().record_verification(query, payload)
    except VerificationError as e:
        logger.warning("verification_payload_invalid", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
