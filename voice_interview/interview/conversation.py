"""
Ordered record of the interview conversation.
"""
import logging
from typing import List, Optional, Tuple

from .models import Utterance, UtteranceTag, Speaker

logger = logging.getLogger("conversation")


class TransientOutstandingError(RuntimeError):
    """Raised when an utterance is appended while a placeholder is still present."""


class ConversationLog:
    """
    Append-only list of utterances.

    The only deletion allowed is removing the single transient placeholder;
    it has to be gone before anything else is appended.
    """

    def __init__(self, utterances: Optional[List[Utterance]] = None):
        self._utterances: List[Utterance] = []
        for utterance in utterances or []:
            self.append(utterance)

    def __len__(self) -> int:
        return len(self._utterances)

    def __iter__(self):
        return iter(self._utterances)

    @property
    def utterances(self) -> Tuple[Utterance, ...]:
        return tuple(self._utterances)

    @property
    def transient(self) -> Optional[Utterance]:
        for utterance in self._utterances:
            if utterance.is_transient:
                return utterance
        return None

    def append(self, utterance: Utterance) -> Utterance:
        if self.transient is not None:
            raise TransientOutstandingError(
                f"Cannot append {utterance.speaker.value} utterance while a placeholder is outstanding"
            )
        self._utterances.append(utterance)
        return utterance

    def remove_transient(self) -> Optional[Utterance]:
        """Delete the placeholder, if any, and return it."""
        placeholder = self.transient
        if placeholder is not None:
            self._utterances.remove(placeholder)
            logger.debug("Removed placeholder: %s", placeholder.content)
        return placeholder

    def counted(self) -> List[Utterance]:
        """Utterances that take part in round counting."""
        return [u for u in self._utterances if u.counts_as_round]

    @property
    def round_count(self) -> int:
        return len(self.counted()) // 2

    def has_tag(self, tag: UtteranceTag) -> bool:
        return any(u.has_tag(tag) for u in self._utterances)

    @property
    def has_follow_up_started(self) -> bool:
        return self.has_tag(UtteranceTag.FOLLOW_UP)

    @property
    def has_coding_started(self) -> bool:
        return self.has_tag(UtteranceTag.CODING_START)

    @property
    def follow_up_round_count(self) -> int:
        """Counted utterances appended after the first follow-up question."""
        counted = self.counted()
        for idx, utterance in enumerate(counted):
            if utterance.has_tag(UtteranceTag.FOLLOW_UP):
                return len(counted) - idx - 1
        return 0

    def recent(self, count: int) -> List[Utterance]:
        """Most recent non-transient utterances."""
        history = [u for u in self._utterances if not u.is_transient]
        return history[-count:] if count > 0 else []

    def last_from(self, speaker: Speaker) -> Optional[Utterance]:
        for utterance in reversed(self._utterances):
            if utterance.speaker == speaker and not utterance.is_transient:
                return utterance
        return None

    def transcript(self) -> List[Utterance]:
        """Everything except the placeholder."""
        return [u for u in self._utterances if not u.is_transient]
