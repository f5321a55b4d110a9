"""Unit tests for the arXiv researcher.

HTTP is served by httpx.MockTransport; no network access.
"""

import httpx
import pytest

from stepwise.config.loader import ResearchConfig
from stepwise.research.arxiv import (
    ArxivResearcher,
    Paper,
    ResearchError,
    analysis_skill_name,
    parse_feed,
    render_papers,
    truncate,
)

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>arXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2101.00001v1</id>
    <title>Graph Neural
      Networks: A Review</title>
    <summary>  A survey of message passing architectures.  </summary>
    <author><name>Ada Lovelace</name></author>
    <author><name>Alan Turing</name></author>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/2101.00002v1</id>
    <title>Second Paper</title>
    <summary>Short.</summary>
  </entry>
</feed>
"""

EMPTY_FEED = '<feed xmlns="http://www.w3.org/2005/Atom"><title>none</title></feed>'


def researcher_with(handler, **config):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ArxivResearcher(ResearchConfig(**config), client=client)


# =============================================================================
# PARSING / RENDERING
# =============================================================================


class TestParseFeed:
    """Tests for parse_feed()."""

    def test_entries(self):
        papers = parse_feed(FEED)

        assert len(papers) == 2
        assert papers[0].title == "Graph Neural Networks: A Review"
        assert papers[0].summary == "A survey of message passing architectures."
        assert papers[0].authors == ("Ada Lovelace", "Alan Turing")
        assert papers[0].link == "http://arxiv.org/abs/2101.00001v1"
        assert papers[1].authors == ()

    def test_malformed(self):
        with pytest.raises(ResearchError):
            parse_feed("<feed><entry>")


class TestRendering:
    """Tests for render_papers() and helpers."""

    def test_render(self):
        text = render_papers("gnn", [Paper(title="T", summary="S" * 10)], summary_chars=4)
        assert text == "Found 1 papers on 'gnn':\n\n  • T\n    SSSS..."

    def test_no_papers(self):
        assert render_papers("x", []) == "No research found for 'x'. Try a different search term."

    def test_truncate(self):
        assert truncate("abc", 5) == "abc"
        assert truncate("abcdef", 3) == "abc..."

    @pytest.mark.parametrize(
        "topic, name",
        [
            ("graph neural networks", "GraphNeuralNetworksAnalysis"),
            ("  LLM   agents ", "LlmAgentsAnalysis"),
        ],
    )
    def test_analysis_skill_name(self, topic, name):
        assert analysis_skill_name(topic) == name


# =============================================================================
# HTTP
# =============================================================================


class TestArxivResearcher:
    """Tests for ArxivResearcher over a mock transport."""

    async def test_fetch(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=FEED)

        researcher = researcher_with(handler, max_results=1)

        text = await researcher.fetch("graph neural networks")

        assert text.startswith("Found 1 papers on 'graph neural networks':")
        assert "Graph Neural Networks: A Review" in text
        params = requests[0].url.params
        assert params["search_query"] == "all:graph neural networks"
        assert params["max_results"] == "1"

    async def test_empty_result(self):
        researcher = researcher_with(lambda request: httpx.Response(200, text=EMPTY_FEED))
        assert (await researcher.fetch("x")).startswith("No research found")

    async def test_http_error_raises(self):
        researcher = researcher_with(lambda request: httpx.Response(503, text="down"))

        with pytest.raises(httpx.HTTPStatusError):
            await researcher.fetch("x")

    async def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        async with ArxivResearcher(client=client):
            pass

        assert not client.is_closed
        await client.aclose()
