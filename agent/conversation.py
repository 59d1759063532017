# conversation.py — Conversation state & single-flight query submission
"""
conversation.py — Conversation State Manager

Owns the ordered list of exchanges for one session and arbitrates new
queries:

- At most one query is in flight; a second submission while one is
  pending is ignored, not queued.
- The user exchange is appended before the analyzer is awaited.
- The analyzer receives only the exchanges that existed before the
  submission, projected to {role, content}.
- Success appends an assistant exchange carrying the result; failure
  appends an assistant exchange carrying the error message.
- Exchanges are append-only; reset() is the only way to remove them.
- A reply that arrives after reset() is dropped, so no assistant
  exchange is appended for a question the reset already removed.
  Under Streamlit's blocking asyncio.run() this cannot happen.

Chart handles (rendered figures) are kept in a table owned by the
manager, keyed by exchange id, and dropped together with the exchanges.
"""

from __future__ import annotations

import logging
import random
import string
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

from agent.models import AnalysisResult, Dataset, Exchange


logger = logging.getLogger(__name__)

Analyzer = Callable[[str, Dataset, list[dict]], Awaitable[AnalysisResult]]

FALLBACK_ERROR_MESSAGE = "Something went wrong while analyzing your data. Please try again."


def default_id_factory() -> str:
    """Millisecond timestamp plus a short random suffix."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{int(time.time() * 1000)}-{suffix}"


class ConversationManager:
    """
    Ordered exchange log with single-flight submission.

    Args:
        analyzer: ``async (query, dataset, history) -> AnalysisResult``
        clock: Returns the timestamp for new exchanges
        id_factory: Returns a fresh exchange id
    """

    def __init__(
        self,
        analyzer: Analyzer,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = default_id_factory,
    ):
        self._analyzer = analyzer
        self._clock = clock
        self._new_id = id_factory
        self._exchanges: list[Exchange] = []
        self._charts: dict[str, Any] = {}
        self._in_flight = False
        self._generation = 0

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def exchanges(self) -> tuple[Exchange, ...]:
        return tuple(self._exchanges)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def __len__(self) -> int:
        return len(self._exchanges)

    def history(self) -> list[dict[str, str]]:
        """All exchanges as {role, content}, oldest first."""
        return [e.as_history() for e in self._exchanges]

    def get(self, exchange_id: str) -> Exchange | None:
        for exchange in self._exchanges:
            if exchange.id == exchange_id:
                return exchange
        return None

    def query_for(self, exchange_id: str) -> str | None:
        """Text of the user exchange that an assistant exchange answers."""
        previous = None
        for exchange in self._exchanges:
            if exchange.id == exchange_id:
                if exchange.role == "assistant" and previous is not None and previous.role == "user":
                    return previous.content
                return None
            previous = exchange
        return None

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit_query(self, text: str, dataset: Dataset | None) -> bool:
        """
        Submit a question about ``dataset``.

        Returns:
            True if the query was accepted (two exchanges appended),
            False if it was ignored (blank text, no dataset, or another
            query in flight)
        """
        if not text or not text.strip() or dataset is None or self._in_flight:
            return False

        # Flag and user exchange are set before the first await
        self._in_flight = True
        generation = self._generation
        prior = self.history()
        self._append("user", text)

        try:
            result = await self._analyzer(text, dataset, prior)
        except Exception as e:
            logger.warning("Analysis failed: %s", e)
            reply = (str(e) or FALLBACK_ERROR_MESSAGE, None)
        else:
            reply = (result.insight, result)
        finally:
            self._in_flight = False

        if generation != self._generation:
            # reset() ran while the analyzer was pending; its question is gone
            logger.info("Discarding reply for a conversation that was reset")
        else:
            self._append("assistant", reply[0], response=reply[1])

        return True

    def _append(self, role: str, content: str, response: AnalysisResult | None = None) -> Exchange:
        exchange = Exchange(
            id=self._new_id(),
            role=role,
            content=content,
            timestamp=self._clock(),
            response=response,
        )
        self._exchanges.append(exchange)
        return exchange

    # -------------------------------------------------------------------------
    # Chart handles
    # -------------------------------------------------------------------------

    def register_chart(self, exchange_id: str, handle: Any) -> None:
        """
        Remember the rendered chart for an exchange.

        Raises:
            KeyError: If the exchange does not exist or has no chart
        """
        exchange = self.get(exchange_id)
        if exchange is None or exchange.response is None or not exchange.response.has_chart:
            raise KeyError(exchange_id)
        self._charts[exchange_id] = handle

    def chart_for(self, exchange_id: str) -> Any | None:
        """Rendered chart for an exchange, or None if there is none."""
        return self._charts.get(exchange_id)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Drop every exchange and chart handle."""
        self._exchanges = []
        self._charts = {}
        self._generation += 1
