# ─────────────────────────────────────────────────────────────────────────────
# POST /generate — product copy generation endpoint (THIN)
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Request

from copysmith.config import get_settings
from copysmith.dependencies import get_orchestrator
from copysmith.rate_limit import limiter
from copysmith.schemas import GenerationRequest, GenerationResult
from copysmith.services.generator import GenerationOrchestrator

router = APIRouter()


@router.post("/generate", response_model=GenerationResult)
@limiter.limit(lambda: get_settings().rate_limit)
async def generate(
    request: Request,
    body: GenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationResult:
    """Generate a sanitized description (and optional socials) for one product.

    The per-IP limit here is a DoS guard; tenant quotas live in the
    orchestrator. Validation is Pydantic. Errors are exceptions.
    """
    return await orchestrator.generate(body)
