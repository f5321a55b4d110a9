"""
Stepwise Core - Execution Context
Purpose: Per-invocation context carrying the cooperative cancellation signal
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import uuid4


class CancellationToken:
    """Cooperative cancellation signal.

    Setting the token never interrupts running work; steps and adapters
    observe it at their next suspension point.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Suspend until cancellation is requested"""
        await self._event.wait()


@dataclass(frozen=True)
class ExecutionContext:
    """Context passed to every Step invocation.

    Attributes:
        token: Cancellation signal shared by all steps of one run
        session_id: Logical session (scopes memory reads and writes)
        run_id: Identifier for log correlation
        metadata: Free-form caller data
    """

    token: CancellationToken = field(default_factory=CancellationToken)
    session_id: str = "default"
    run_id: str = field(default_factory=lambda: f"run_{uuid4().hex[:8]}")
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default(cls, session_id: Optional[str] = None) -> ExecutionContext:
        """Fresh context with its own, un-cancelled token"""
        if session_id is None:
            return cls()
        return cls(session_id=session_id)

    @property
    def cancelled(self) -> bool:
        return self.token.is_cancelled

    def cancel(self) -> None:
        self.token.cancel()
