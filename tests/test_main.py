import click
import pytest
from click.testing import CliRunner

import main
from conftest import FakeFetcher, FakeOracle, page
from crawler import CrawlError
from llm_interface import OracleError

START = "https://example.com/start"


@pytest.fixture
def wire(monkeypatch):
    """Swap the production oracle/fetcher for in-memory fakes."""
    built = {}

    def install(oracle, fetcher):
        def make_oracle(**kwargs):
            built["oracle_kwargs"] = kwargs
            return oracle

        def make_fetcher(**kwargs):
            built["fetcher_kwargs"] = kwargs
            return fetcher

        monkeypatch.setattr(main, "LlamaOracle", make_oracle)
        monkeypatch.setattr(main, "HttpFetcher", make_fetcher)
        return built

    return install


class TestSpiderCommand:

    def test_help_lists_budget_flags(self):
        result = CliRunner().invoke(main.cli, ["spider", "--help"])
        assert result.exit_code == 0
        for flag in ("--query", "--max-chars", "--min-sources", "--search-limit",
                     "--max-pages", "--max-depth", "--max-elapsed",
                     "--max-child-candidates", "--max-children-per-page",
                     "--allow-local", "--model-path"):
            assert flag in result.stdout

    def test_report_goes_to_stdout(self, wire):
        built = wire(FakeOracle(seeds=[START]), FakeFetcher({START: page("Start")}))

        result = CliRunner().invoke(main.cli, ["spider", "--query", "what is tokio?",
                                               "--max-depth", "0", "--model-path", "m.gguf"])

        assert result.exit_code == 0
        assert result.stdout.startswith("# Spider Result")
        assert f"- [Medium] {START}" in result.stdout
        assert built["oracle_kwargs"]["model_path"] == "m.gguf"

    def test_max_chars_applies_to_output(self, wire):
        wire(FakeOracle(seeds=[START]), FakeFetcher({START: page("Start")}))
        result = CliRunner().invoke(main.cli, ["spider", "--query", "q", "--max-chars", "12"])
        assert result.exit_code == 0
        assert result.stdout == "# Spider Res"

    def test_env_overrides_defaults(self, wire):
        seeds = [f"https://s{i}.example.com/" for i in range(5)]
        fetcher = FakeFetcher({u: page(u) for u in seeds})
        wire(FakeOracle(seeds=seeds), fetcher)

        result = CliRunner().invoke(main.cli, ["spider", "--query", "q"],
                                    env={"LLM_SPIDER_MAX_PAGES": "2",
                                         "LLM_SPIDER_MAX_DEPTH": "0"})

        assert result.exit_code == 0
        assert fetcher.calls == seeds[:2]

    def test_fatal_error_exits_non_zero_with_cause_chain(self, wire):
        wire(FakeOracle(search_error=OracleError("http status: 503")), FakeFetcher({}))

        result = CliRunner().invoke(main.cli, ["spider", "--query", "q"])

        assert result.exit_code == 1
        assert result.stdout == ""
        assert "crawl: web search: http status: 503" in result.stderr

    def test_query_is_required(self):
        result = CliRunner().invoke(main.cli, ["spider"])
        assert result.exit_code == 2

    def test_bad_duration_is_a_usage_error(self):
        result = CliRunner().invoke(main.cli, ["spider", "--query", "q",
                                               "--max-elapsed", "soon"])
        assert result.exit_code == 2
        assert "not a duration" in result.stderr


class TestHelpers:

    @pytest.mark.parametrize("text,seconds", [("30s", 30.0), ("1500ms", 1.5),
                                              ("2m", 120.0), ("1h", 3600.0),
                                              ("45", 45.0), (" 0.5S ", 0.5)])
    def test_duration(self, text, seconds):
        assert main.Duration().convert(text, None, None) == pytest.approx(seconds)

    def test_duration_rejects_garbage(self):
        with pytest.raises(click.BadParameter):
            main.Duration().convert("-3s", None, None)

    def test_cause_chain(self):
        try:
            try:
                raise OracleError("model unreachable")
            except OracleError as exc:
                raise CrawlError("select child links: https://e.com/") from exc
        except CrawlError as exc:
            assert main.cause_chain(exc) == \
                "select child links: https://e.com/: model unreachable"
