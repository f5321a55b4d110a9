"""Stepwise research retrieval (arXiv)."""

from stepwise.research.arxiv import (
    ATOM_NS,
    ArxivResearcher,
    Paper,
    ResearchError,
    analysis_skill_for,
    analysis_skill_name,
    parse_feed,
    render_papers,
)

__all__ = [
    "ATOM_NS",
    "ArxivResearcher",
    "Paper",
    "ResearchError",
    "analysis_skill_for",
    "analysis_skill_name",
    "parse_feed",
    "render_papers",
]
