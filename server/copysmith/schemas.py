# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Vibe(StrEnum):
    """Tone of the generated copy."""

    edgy = "edgy"
    minimalist = "minimalist"
    roast = "roast"


class CopyFormat(StrEnum):
    """Layout of the generated description."""

    paragraph = "paragraph"
    bullets = "bullets"
    features = "features"


class Metafield(BaseModel):
    """One product metafield. Non-string values are stored JSON-encoded."""

    model_config = ConfigDict(frozen=True)

    namespace: str = ""
    key: str
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def encode_non_string(cls, v: Any) -> str:
        if v is None:
            return ""
        if isinstance(v, str):
            return v
        return json.dumps(v)


class ProductSnapshot(BaseModel):
    """Product data the caller fetched from the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str | None = None
    description: str = ""
    metafields: list[Metafield] = Field(default_factory=list)

    @field_validator("metafields", mode="before")
    @classmethod
    def flatten_connection(cls, v: Any) -> Any:
        """Accept the GraphQL connection shape ``{"edges": [{"node": {...}}]}``."""
        if v is None:
            return []
        if isinstance(v, dict) and "edges" in v:
            edges = v["edges"] or []
            if not isinstance(edges, list) or not all(isinstance(edge, dict) for edge in edges):
                raise ValueError("metafield edges must be a list of objects")
            return [edge.get("node", edge) for edge in edges]
        return v


class GenerationRequest(BaseModel):
    """Incoming request to generate product copy. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    product: ProductSnapshot
    vibe: Vibe = Vibe.edgy
    format: CopyFormat = CopyFormat.paragraph
    keywords: str = Field("", max_length=500)
    include_socials: bool = False
    tenant_id: str | None = Field(None, description="Shop domain scoping quota")


class Socials(BaseModel):
    """Social captions generated alongside the description."""

    twitter: str = ""
    instagram: str = ""


class GenerationResult(BaseModel):
    """Sanitized generation output. Cached verbatim under its fingerprint."""

    description: str
    socials: Socials | None = None


class LivenessResponse(BaseModel):
    """Liveness probe — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness probe — can the instance serve generations?"""

    status: str  # "ready" or "not_ready"
    upstream_configured: bool
    store_connected: bool


class PromptPreviewResponse(BaseModel):
    """Debug view of what would be sent upstream."""

    fingerprint: str
    prompt: str


class UsageResponse(BaseModel):
    """Debug view of a tenant's monthly usage."""

    tenant_id: str
    used: int = Field(..., ge=0)
    limit: int = Field(..., ge=0)
    allowed: bool
