# ─────────────────────────────────────────────────────────────────────────────
# Prompt Builder — product data + copy options → one instruction string
# ─────────────────────────────────────────────────────────────────────────────


from collections.abc import Sequence

from copysmith.schemas import Metafield, ProductSnapshot

# ── Tone directives (unknown vibe → edgy) ────────────────────────────────────

_VIBE_DIRECTIVES: dict[str, str] = {
    "edgy": "Bold. Punchy. Minimal fluff.",
    "minimalist": "Ultra concise. Functional. No adjectives.",
    "roast": "Real Talk. Brutally honest. Persuasive, not rude.",
}

# ── Format directives (unknown format → paragraph) ───────────────────────────

_FORMAT_DIRECTIVES: dict[str, str] = {
    "paragraph": "Return HTML paragraphs using <p> tags (2-3 short paragraphs).",
    "bullets": "Return an unordered list using <ul><li> ... </li></ul> with 4-6 concise bullets.",
    "features": (
        "Return one short <p> intro followed by a <ul> of 4-6 <li> features, "
        "each starting with the feature name in <strong>."
    ),
}

SOCIALS_INSTRUCTION = "Also generate a 'socials' object with keys 'twitter' and 'instagram'."

CLOSING_INSTRUCTIONS: tuple[str, ...] = (
    "RETURN: Only valid JSON object with exactly these keys:",
    "{\n"
    '  "description": "<p>HTML product description here...</p>",\n'
    '  "socials": { "twitter": "...", "instagram": "..." }  // or null\n'
    "}",
    "Do NOT include Markdown fenced code blocks. Do NOT include any explanation text. "
    "Just return JSON.",
)


def flatten_metafields(metafields: Sequence[Metafield]) -> str:
    """``key: value`` pairs joined by ", ", or "None" when there are none."""
    if not metafields:
        return "None"
    return ", ".join(f"{m.key}: {m.value}" for m in metafields)


def build_prompt(
    product: ProductSnapshot,
    vibe: str,
    fmt: str,
    keywords: str = "",
    include_socials: bool = False,
) -> str:
    """Build the user prompt for one product.

    Pure and deterministic: identical arguments give byte-identical output.
    Optional lines (keywords, socials) are dropped rather than left blank.

    Args:
        product: Title, old description and metafields to ground the copy.
        vibe: Tone key. Anything unrecognized uses the "edgy" directive.
        fmt: Layout key. Anything unrecognized uses the "paragraph" directive.
        keywords: Free-text SEO keywords; omitted when empty.
        include_socials: Ask for Twitter and Instagram captions as well.

    Returns:
        The newline-joined prompt.
    """
    old_description = product.description.replace("\n", " ")

    lines = [
        f"Title: {'Untitled' if product.title is None else product.title}",
        f"Meta: {flatten_metafields(product.metafields)}",
        f"Old Description: {old_description or 'None'}",
        f"Tone: {_VIBE_DIRECTIVES.get(vibe, _VIBE_DIRECTIVES['edgy'])}",
        f"Format: {_FORMAT_DIRECTIVES.get(fmt, _FORMAT_DIRECTIVES['paragraph'])}",
        f"SEO Keywords: {keywords}" if keywords else "",
        SOCIALS_INSTRUCTION if include_socials else "",
        *CLOSING_INSTRUCTIONS,
    ]
    return "\n".join(line for line in lines if line)
