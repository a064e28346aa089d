# report.py — Markdown rendering of a crawl
from __future__ import annotations

from typing import List

from crawler import CrawlResult, UserRequest


def escape_md_inline(text: str) -> str:
    return (text.replace("\\", "\\\\")
                .replace("[", "\\[")
                .replace("]", "\\]")
                .replace("`", "\\`"))


def truncate_to_char_limit(text: str, max_chars: int) -> str:
    """Hard cut at `max_chars` characters; the result may be broken Markdown."""
    if max_chars <= 0:
        return ""
    return text[:max_chars]


def compose_markdown(request: UserRequest, result: CrawlResult) -> str:
    """
    Render query, findings (tier, url, excerpt) and a source list, plus an
    advisory note when fewer than ``min_sources`` pages were collected.
    """
    lines: List[str] = [
        "# Spider Result", "",
        "## Query", "",
        f"- {escape_md_inline(request.query)}", "",
        "## Findings", "",
    ]
    if not result.sources:
        lines.append("- No sources collected.")
    for source in result.sources:
        lines.append(f"- [{source.trust_tier}] {escape_md_inline(source.url)}")
        lines.append(f"  - {escape_md_inline(source.excerpt) or '(no excerpt)'}")
    lines += ["", "## Sources", ""]
    lines += [f"- [{s.trust_tier}] {s.url}" for s in result.sources]

    if len(result.sources) < request.min_sources:
        lines += [
            "", "## Notes", "",
            f"- Collected {len(result.sources)} source(s); `min_sources` is {request.min_sources}.",
            "- Consider relaxing the crawl budgets (`max_pages` / `max_depth` / `max_elapsed`).",
        ]

    return truncate_to_char_limit("\n".join(lines) + "\n", request.max_chars)
