"""Markdown templates for vault documents."""

import re
from typing import Any

import yaml

from ..models import SynthesisResult

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


def render_frontmatter(data: dict[str, Any]) -> str:
    """Render YAML frontmatter block."""
    fm = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return f"---\n{fm}---\n"


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter, body). Broken YAML is treated as no frontmatter."""
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        fm = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        return {}, text[match.end():]
    if not isinstance(fm, dict):
        fm = {}
    return fm, text[match.end():]


def synthesis_frontmatter(result: SynthesisResult) -> dict[str, Any]:
    """Metadata header of a persisted synthesis note."""
    fm: dict[str, Any] = {
        "title": result.title,
        "type": "synthesis",
        "synthesis_type": result.synthesis_type,
        "created": result.created_at.isoformat(),
        "sources": list(result.source_links),
    }
    if result.suggested_tags:
        fm["tags"] = list(result.suggested_tags)
    return fm


def render_synthesis(result: SynthesisResult) -> str:
    """Frontmatter envelope, a blank line, then the generated body."""
    return render_frontmatter(synthesis_frontmatter(result)) + "\n" + result.content
