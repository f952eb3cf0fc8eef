import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from chatrelay.services.admission_service import DEFAULT_SEEN_IDS_LIMIT, SeenMessageIds
from chatrelay.services.conversation_window import DEFAULT_HISTORY_LIMIT, ConversationWindow


class RelaySession:
    """In-memory state of the relay: startup epoch, seen ids and the turn window.

    Created once at application startup and owned by the ReplyPipeline. All reads
    and writes of `seen_ids` and `window` must happen inside `locked()`.
    """

    def __init__(
        self,
        epoch: Optional[float] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        seen_ids_limit: int = DEFAULT_SEEN_IDS_LIMIT,
    ):
        self._epoch = time.time() if epoch is None else epoch
        self.seen_ids = SeenMessageIds(limit=seen_ids_limit)
        self.window = ConversationWindow(limit=history_limit)
        self._lock = threading.Lock()

    @property
    def epoch(self) -> float:
        return self._epoch

    @contextmanager
    def locked(self) -> Iterator["RelaySession"]:
        with self._lock:
            yield self
