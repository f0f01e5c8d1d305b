"""
Utterance publish/subscribe.

The transcription collaborator publishes each completed utterance; listeners
register with ``on_utterance_complete`` and get back an unsubscribe callable.
A failing listener is logged and never affects the publisher or other
listeners.
"""

import inspect
from typing import Awaitable, Callable, List, Union

from src.models.presentation import Utterance
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

UtteranceListener = Callable[[Utterance], Union[Awaitable[None], None]]


class UtteranceBus:
    """Delivers completed utterances to registered listeners."""

    def __init__(self):
        self._listeners: List[UtteranceListener] = []

    def on_utterance_complete(self, listener: UtteranceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def publish(self, utterance: Utterance) -> None:
        """Deliver ``utterance`` to every listener in registration order."""
        for listener in list(self._listeners):
            try:
                result = listener(utterance)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Utterance listener failed for {utterance.id}: {e}", exc_info=True)
