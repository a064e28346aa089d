# main.py — command-line entry point
from __future__ import annotations

import logging
import re
import sys

import click

from crawler import CrawlError, UserRequest, crawl
from fetcher import DEFAULT_USER_AGENT, HttpFetcher
from llm_interface import LlamaOracle, OracleError
from report import compose_markdown

log = logging.getLogger("llm_spider")

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", re.I)
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class Duration(click.ParamType):
    """``1500ms``, ``30s``, ``2m``, ``1h`` or bare seconds → float seconds."""

    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            return float(value)
        m = _DURATION_RE.match(str(value))
        if not m:
            self.fail(f"{value!r} is not a duration (e.g. 30s, 1500ms, 2m)", param, ctx)
        number, unit = m.groups()
        return float(number) * _UNITS[(unit or "s").lower()]


def setup_logging(level: str) -> None:
    """Diagnostics go to stderr; stdout is reserved for the report."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def cause_chain(exc: BaseException) -> str:
    """``outer: inner: root`` following ``raise ... from``."""
    parts = []
    while exc is not None:
        parts.append(str(exc) or type(exc).__name__)
        exc = exc.__cause__
    return ": ".join(parts)


@click.group()
@click.option("--log-level", default="WARNING", show_default=True, envvar="LLM_SPIDER_LOG",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Diagnostic verbosity on stderr.")
def cli(log_level: str) -> None:
    """Budgeted, LLM-guided web research crawler."""
    setup_logging(log_level)


@cli.command()
@click.option("--query", required=True, help="Natural-language research question.")
@click.option("--max-chars", default=4000, show_default=True, type=click.IntRange(min=0),
              envvar="LLM_SPIDER_MAX_CHARS", help="Report length cap (characters).")
@click.option("--min-sources", default=3, show_default=True, type=click.IntRange(min=0),
              envvar="LLM_SPIDER_MIN_SOURCES", help="Below this, the report adds a note.")
@click.option("--search-limit", default=10, show_default=True, type=click.IntRange(min=0),
              envvar="LLM_SPIDER_SEARCH_LIMIT", help="Seed URLs requested from search.")
@click.option("--max-pages", default=20, show_default=True, type=click.IntRange(min=0),
              envvar="LLM_SPIDER_MAX_PAGES", help="Pages to collect at most.")
@click.option("--max-depth", default=1, show_default=True, type=click.IntRange(min=0),
              envvar="LLM_SPIDER_MAX_DEPTH", help="Link hops from a seed.")
@click.option("--max-elapsed", default="30s", show_default=True, type=Duration(),
              envvar="LLM_SPIDER_MAX_ELAPSED", help="Wall-clock budget (e.g. 30s, 2m).")
@click.option("--max-child-candidates", default=20, show_default=True,
              type=click.IntRange(min=0), envvar="LLM_SPIDER_MAX_CHILD_CANDIDATES",
              help="Outbound links considered per page.")
@click.option("--max-children-per-page", default=3, show_default=True,
              type=click.IntRange(min=0), envvar="LLM_SPIDER_MAX_CHILDREN_PER_PAGE",
              help="Links followed per page.")
@click.option("--allow-local", is_flag=True, envvar="LLM_SPIDER_ALLOW_LOCAL",
              help="Permit loopback/private-network hosts.")
@click.option("--model-path", default=None, envvar="LLM_SPIDER_MODEL_PATH",
              help="GGUF model used as the oracle.")
@click.option("--n-ctx", default=8192, show_default=True, type=click.IntRange(min=512),
              envvar="LLM_SPIDER_N_CTX", help="Model context window.")
@click.option("--n-gpu-layers", default=-1, show_default=True, type=int,
              envvar="LLM_SPIDER_N_GPU_LAYERS", help="Layers to offload (-1 = all).")
@click.option("--user-agent", default=DEFAULT_USER_AGENT, show_default=True,
              envvar="LLM_SPIDER_USER_AGENT", help="User-Agent for page fetches.")
def spider(query: str, max_chars: int, min_sources: int, search_limit: int,
           max_pages: int, max_depth: int, max_elapsed: float,
           max_child_candidates: int, max_children_per_page: int,
           allow_local: bool, model_path: str | None, n_ctx: int,
           n_gpu_layers: int, user_agent: str) -> None:
    """Crawl the web for a query and print a Markdown report."""
    request = UserRequest(
        query=query,
        max_chars=max_chars,
        min_sources=min_sources,
        search_limit=search_limit,
        max_pages=max_pages,
        max_depth=max_depth,
        max_elapsed=max_elapsed,
        max_child_candidates=max_child_candidates,
        max_children_per_page=max_children_per_page,
        allow_local=allow_local,
    )
    log.info("spider start: %r (max_pages=%d, max_depth=%d, max_elapsed=%.1fs)",
             query, max_pages, max_depth, max_elapsed)

    oracle = LlamaOracle(model_path=model_path, n_ctx=n_ctx, n_gpu_layers=n_gpu_layers)
    fetcher = HttpFetcher(user_agent=user_agent)
    try:
        result = crawl(request, oracle, fetcher)
    except (CrawlError, OracleError) as exc:
        click.echo(f"crawl: {cause_chain(exc)}", err=True)
        sys.exit(1)

    click.echo(compose_markdown(request, result), nl=False)


if __name__ == "__main__":
    cli()
