import dataclasses
import logging
import typing

import jambuddy.constants
import jambuddy.state


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class NoteEvent:

	"""
	A human note-on captured by the recorder.

	Times are seconds on the session clock.  ``end_time`` is always one
	recording slot after ``start_time``; the real key-up time is not used.
	"""

	pitch: int
	start_time: float
	end_time: float


class NoteRecorder:

	"""
	Ordered buffer of human notes for the next AI request.

	The buffer belongs to the recorder until ``drain()`` hands it to the
	sequence bridge.  While the AI has the turn, ``record()`` is a no-op.
	"""

	def __init__ (self, state: jambuddy.state.SessionState, slot_seconds: float = jambuddy.constants.SLOT_SECONDS) -> None:

		self._state = state
		self._slot_seconds = slot_seconds
		self._notes: typing.List[NoteEvent] = []

	def record (self, pitch: int, timestamp: float) -> bool:

		"""Append a note played at *timestamp* seconds.  Returns ``False`` if ignored."""

		if not self._state.human_turn:
			logger.debug(f"Ignoring note {pitch} recorded during the AI turn")
			return False

		self._notes.append(NoteEvent(pitch=pitch, start_time=timestamp, end_time=timestamp + self._slot_seconds))

		return True

	def drain (self) -> typing.List[NoteEvent]:

		"""Return the buffered notes and empty the buffer."""

		notes, self._notes = self._notes, []

		return notes

	def clear (self) -> None:

		self._notes = []

	def is_empty (self) -> bool:

		return not self._notes

	@property
	def notes (self) -> typing.Tuple[NoteEvent, ...]:

		"""Read-only view of the buffer."""

		return tuple(self._notes)

	def __len__ (self) -> int:

		return len(self._notes)
