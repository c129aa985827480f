"""
Constraint resolution endpoint.

POST /resolve  body: [...] or {"constraints": [...]}
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ewrouter.core.logging import get_logger
from ewrouter.services.constraints.resolver import get_constraint_resolver

logger = get_logger(__name__)

router = APIRouter()


@router.post("")
async def resolve_constraints(request: Request):
    """
    Detect and arbitrate conflicts among domain constraints.

    Returns {"conflicts", "resolved_set", "metadata"}; malformed input returns
    400 with {"error": message} and nothing else.
    """
    raw = await request.body()
    output = get_constraint_resolver().resolve_json(raw.decode("utf-8", errors="replace"))

    if "error" in output:
        return JSONResponse(status_code=400, content=output)
    return output
