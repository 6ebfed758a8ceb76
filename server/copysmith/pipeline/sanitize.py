# ─────────────────────────────────────────────────────────────────────────────
# Output Sanitizer — allow-listed HTML, no attributes
# ─────────────────────────────────────────────────────────────────────────────


import nh3

ALLOWED_TAGS: frozenset[str] = frozenset(
    {"p", "br", "ul", "li", "strong", "b", "em", "i", "h1", "h2", "h3", "h4", "ol"}
)


def sanitize_html(html: str | None) -> str:
    """Strip everything but ALLOWED_TAGS and drop every attribute.

    ``<script>``/``<style>`` are removed with their content; other disallowed
    tags are unwrapped and keep their text. Idempotent.
    """
    if not html:
        return ""
    return nh3.clean(
        str(html),
        tags=set(ALLOWED_TAGS),
        # "*" overrides the generic defaults (lang, title) as well.
        attributes={"*": set()},
        link_rel=None,
        strip_comments=True,
    )
