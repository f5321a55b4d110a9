"""
Divide-and-conquer processing of large inputs.

Text above ``threshold_chars`` is split on paragraph boundaries into chunks
of at most ``chunk_chars``; chunks are sent to the answerer concurrently
(bounded by ``max_parallel``) and the partial answers are merged in chunk
order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from stepwise.config.loader import LargeInputConfig

logger = logging.getLogger(__name__)

AnswerFn = Callable[[str], Awaitable[str]]


class DivideAndConquerProcessor:
    """Chunked, bounded-concurrency processing through an answer function.

    Args:
        answer: ``async fn(prompt) -> str``
        config: Thresholds, chunk size, parallelism and task prompt
    """

    def __init__(self, answer: AnswerFn, config: Optional[LargeInputConfig] = None):
        self._answer = answer
        self.config = config or LargeInputConfig()

    def divide(self, text: str) -> List[str]:
        """Split ``text`` into chunks no longer than ``chunk_chars``.

        Paragraphs are packed greedily; a paragraph longer than a chunk is
        cut at the last whitespace before the limit (or hard at the limit).
        """
        limit = self.config.chunk_chars
        chunks: List[str] = []
        current = ""

        for paragraph in (p.strip() for p in text.split("\n\n")):
            if not paragraph:
                continue
            while len(paragraph) > limit:
                cut = paragraph.rfind(" ", 0, limit)
                if cut <= 0:
                    cut = limit
                if current:
                    chunks.append(current)
                    current = ""
                chunks.append(paragraph[:cut].strip())
                paragraph = paragraph[cut:].strip()
            if not paragraph:
                continue
            if current and len(current) + 2 + len(paragraph) > limit:
                chunks.append(current)
                current = paragraph
            else:
                current = f"{current}\n\n{paragraph}" if current else paragraph

        if current:
            chunks.append(current)
        return chunks

    def _prompt(self, task: str, text: str) -> str:
        return f"{task}\n\n{text}"

    async def process(self, text: str, task: Optional[str] = None) -> str:
        """Process ``text``; returns the merged answer"""
        task = task or self.config.task_prompt

        if len(text) <= self.config.threshold_chars:
            return await self._answer(self._prompt(task, text))

        chunks = self.divide(text)
        semaphore = asyncio.Semaphore(self.config.max_parallel)
        logger.info(
            f"Processing {len(text)} chars as {len(chunks)} chunks "
            f"(max {self.config.max_parallel} in parallel)"
        )

        async def _process_chunk(index: int, chunk: str) -> str:
            async with semaphore:
                logger.debug(f"Processing chunk {index + 1}/{len(chunks)} ({len(chunk)} chars)")
                return await self._answer(self._prompt(task, chunk))

        results = await asyncio.gather(
            *(_process_chunk(i, chunk) for i, chunk in enumerate(chunks))
        )
        merged = "\n\n".join(result.strip() for result in results)
        return f"Processed {len(chunks)} chunks:\n\n{merged}"
