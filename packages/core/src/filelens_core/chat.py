"""Follow-up chat session lifecycle.

    UNINITIALIZED → STARTING → ACTIVE ⇄ SENDING

A session is terminated (back to UNINITIALIZED) by `reset()`, which callers
invoke when a new batch review begins, a different history item is loaded,
or the backend selection changes.
"""

from __future__ import annotations

import copy
import logging
from enum import Enum

from filelens_core.errors import ChatBusyError, ChatNotActiveError
from filelens_core.models import BatchCodeReview, ChatMessage, ChatRole, CodeFile
from filelens_core.providers.base import BaseReviewer, Capability, ChatSession
from filelens_core.utils.text import DEFAULT_MAX_LENGTH, sanitize_input

logger = logging.getLogger(__name__)

CHAT_UNAVAILABLE_MESSAGE = "Chat is unavailable for this review."


class ChatState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    ACTIVE = "active"
    SENDING = "sending"


class ChatSessionManager:
    """Owns the active chat session and its transcript.

    At most one send is in flight; a second send while one is outstanding
    is rejected, not queued. A failed turn is recorded in the transcript as
    a model message carrying the error text and the session stays usable.
    """

    def __init__(self, max_message_length: int = DEFAULT_MAX_LENGTH):
        self.max_message_length = max_message_length
        self.state = ChatState.UNINITIALIZED
        self.unavailable = False
        self._session: ChatSession | None = None
        self._messages: list[ChatMessage] = []
        self._files: list[CodeFile] = []
        self._review: BatchCodeReview | None = None

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session is not None else None

    @property
    def is_active(self) -> bool:
        return self.state in (ChatState.ACTIVE, ChatState.SENDING)

    def reset(self) -> None:
        if self._session is not None:
            logger.debug("Terminating chat session %s", self._session.session_id)
        self.state = ChatState.UNINITIALIZED
        self.unavailable = False
        self._session = None
        self._messages = []
        self._files = []
        self._review = None

    async def start(self, reviewer: BaseReviewer, files: list[CodeFile], batch_review: BatchCodeReview) -> bool:
        """Open a session seeded with the reviewed files and their feedback.

        Returns False, with `unavailable` set, when the backend cannot offer
        a session. That is never a failure of the review itself.
        """
        self.reset()
        self.state = ChatState.STARTING
        self._files = copy.deepcopy(list(files))
        self._review = copy.deepcopy(batch_review)

        session = None
        if reviewer.supports(Capability.CHAT):
            try:
                session = await reviewer.start_chat(self._files, self._review)
            except Exception as e:
                logger.warning("Chat session could not be started: %s", e)

        if session is None:
            self.state = ChatState.UNINITIALIZED
            self.unavailable = True
            logger.info(CHAT_UNAVAILABLE_MESSAGE)
            return False

        self._session = session
        self.state = ChatState.ACTIVE
        logger.debug("Chat session %s started", session.session_id)
        return True

    async def send(self, text: str) -> ChatMessage:
        """Send one user message and return the model message appended for it."""
        if self.state == ChatState.SENDING:
            raise ChatBusyError("A message is already being sent. Wait for the reply.")
        if self.state != ChatState.ACTIVE or self._session is None:
            raise ChatNotActiveError("No active chat session. Run a review first.")

        message = sanitize_input(text, self.max_message_length).strip()
        if not message:
            raise ValueError("Message is empty.")

        session = self._session
        self.state = ChatState.SENDING
        self._messages.append(ChatMessage(role=ChatRole.USER, content=message))
        try:
            reply = ChatMessage(role=ChatRole.MODEL, content=await session.send(message))
        except Exception as e:
            logger.warning("Chat turn failed: %s", e)
            reply = ChatMessage(role=ChatRole.MODEL, content=f"Sorry, I encountered an error: {e}")
        except BaseException:
            # Cancelled mid-send. The session never committed the turn, so
            # neither does the transcript.
            if self._session is session:
                self._messages.pop()
                self.state = ChatState.ACTIVE
            raise

        # Reset while the reply was pending: the reply belongs to a dead session.
        if self._session is not session:
            return reply
        self.state = ChatState.ACTIVE
        self._messages.append(reply)
        return reply
