"""arXiv research retrieval.

Queries the arXiv Atom API over httpx and renders the top results as text.
Also builds the "<Topic>Analysis" skill learned from a research topic.

Usage:
    async with ArxivResearcher() as researcher:
        text = await researcher.fetch("graph neural networks")
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import httpx

from stepwise.config.loader import ResearchConfig
from stepwise.skills.models import Skill, SkillStep

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"


class ResearchError(Exception):
    """Raised when the research backend answers with something unusable"""

    pass


@dataclass(frozen=True)
class Paper:
    """One search hit."""

    title: str
    summary: str
    link: str = ""
    authors: Tuple[str, ...] = field(default_factory=tuple)


class ArxivResearcher:
    """Researcher backed by the public arXiv API.

    Args:
        config: Research settings (endpoint, result count, truncation)
        client: Optional pre-built httpx.AsyncClient (tests pass one with a
            MockTransport); a client created here is closed by ``close()``
    """

    def __init__(self, config: Optional[ResearchConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or ResearchConfig()
        self._client = client
        self._owns_client = client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ArxivResearcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def search(self, topic: str) -> List[Paper]:
        """Return up to ``max_results`` papers for ``topic``.

        Raises:
            httpx.HTTPError: On transport failures or non-2xx responses
            ResearchError: If the response is not a valid Atom feed
        """
        client = await self._get_http_client()
        params = {
            "search_query": f"all:{topic}",
            "start": 0,
            "max_results": self.config.max_results,
        }
        response = await client.get(self.config.base_url, params=params)
        response.raise_for_status()
        papers = parse_feed(response.text)[: self.config.max_results]
        logger.info(f"arXiv returned {len(papers)} papers for '{topic}'")
        return papers

    async def fetch(self, topic: str) -> str:
        papers = await self.search(topic)
        return render_papers(topic, papers, self.config.summary_chars)


# ============================================================================
# PARSING AND RENDERING
# ============================================================================


def _text(entry: ET.Element, tag: str) -> str:
    element = entry.find(f"{{{ATOM_NS}}}{tag}")
    if element is None or element.text is None:
        return ""
    return " ".join(element.text.split())


def parse_feed(xml_text: str) -> List[Paper]:
    """Parse an Atom feed into papers"""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ResearchError(f"Malformed Atom feed: {e}") from e

    papers = []
    for entry in root.iter(f"{{{ATOM_NS}}}entry"):
        authors = tuple(
            _text(author, "name") for author in entry.findall(f"{{{ATOM_NS}}}author")
        )
        papers.append(
            Paper(
                title=_text(entry, "title"),
                summary=_text(entry, "summary"),
                link=_text(entry, "id"),
                authors=authors,
            )
        )
    return papers


def truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def render_papers(topic: str, papers: List[Paper], summary_chars: int = 150) -> str:
    if not papers:
        return f"No research found for '{topic}'. Try a different search term."

    lines = [f"Found {len(papers)} papers on '{topic}':", ""]
    for paper in papers:
        lines.append(f"  • {paper.title}")
        lines.append(f"    {truncate(paper.summary, summary_chars)}")
        lines.append("")
    return "\n".join(lines).rstrip()


# ============================================================================
# SKILL LEARNING
# ============================================================================


def analysis_skill_name(topic: str) -> str:
    """'graph neural networks' -> 'GraphNeuralNetworksAnalysis'"""
    words = [w for w in topic.split() if w]
    return "".join(w[0].upper() + w[1:].lower() for w in words) + "Analysis"


def analysis_skill_for(topic: str) -> Skill:
    """Analysis procedure learned from researching ``topic``"""
    return Skill(
        name=analysis_skill_name(topic),
        description=f"Analysis methodology from '{topic}' research",
        steps=(
            SkillStep("Gather sources", "Relevant papers"),
            SkillStep("Extract patterns", "Key techniques"),
            SkillStep("Synthesize", "Actionable knowledge"),
        ),
        triggers=tuple(w.lower() for w in topic.split() if len(w) > 2),
        source="research",
    )
