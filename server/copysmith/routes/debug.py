# ─────────────────────────────────────────────────────────────────────────────
# Debug Routes — prompt preview and usage inspection
# ─────────────────────────────────────────────────────────────────────────────
# Only mounted when settings.enable_debug_routes is True.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends

from copysmith.cache.generation_cache import fingerprint
from copysmith.dependencies import get_quota
from copysmith.pipeline.prompt_builder import build_prompt
from copysmith.schemas import GenerationRequest, PromptPreviewResponse, UsageResponse
from copysmith.services.quota import QuotaTracker

router = APIRouter()


@router.post("/prompt", response_model=PromptPreviewResponse)
async def prompt_preview(body: GenerationRequest) -> PromptPreviewResponse:
    """Show the prompt and cache fingerprint a request would use.

    No quota is consumed and nothing is sent upstream.
    """
    return PromptPreviewResponse(
        fingerprint=fingerprint(
            body.product.id, body.vibe, body.format, body.keywords, body.include_socials
        ),
        prompt=build_prompt(
            body.product, body.vibe, body.format, body.keywords, body.include_socials
        ),
    )


@router.get("/usage/{tenant_id}", response_model=UsageResponse)
async def usage(tenant_id: str, quota: QuotaTracker = Depends(get_quota)) -> UsageResponse:
    """Current month's usage for one tenant (zeros if the store is down)."""
    status = await quota.check_monthly_limit(tenant_id)
    return UsageResponse(
        tenant_id=tenant_id,
        used=status.used,
        limit=status.limit,
        allowed=status.allowed,
    )
