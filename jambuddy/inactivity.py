import logging
import typing

import jambuddy.clock
import jambuddy.constants
import jambuddy.recorder
import jambuddy.state


logger = logging.getLogger(__name__)


class InactivityScheduler:

	"""
	A single debounced silence timer.

	Each call to ``note_activity()`` replaces any pending timer, so a burst of
	playing collapses into one trigger fired ``threshold_ms`` after the last
	release.  The trigger runs at most once per arming.
	"""

	def __init__ (
		self,
		state: jambuddy.state.SessionState,
		recorder: jambuddy.recorder.NoteRecorder,
		clock: jambuddy.clock.Clock,
		trigger: jambuddy.clock.Action,
		threshold_ms: float = jambuddy.constants.INACTIVITY_THRESHOLD_MS
	) -> None:

		"""
		Parameters:
			state: Shared session state; consulted for the toggle and the turn.
			recorder: Buffer that must be non-empty for the timer to arm.
			clock: Dispatcher used for the timer.
			trigger: Called when the silence threshold elapses.  May return a
				coroutine (the turn gate's ``begin_turn``).
			threshold_ms: Silence required before the trigger fires.
		"""

		if threshold_ms <= 0:
			raise ValueError("Inactivity threshold must be positive")

		self._state = state
		self._recorder = recorder
		self._clock = clock
		self._trigger = trigger
		self.threshold_ms = threshold_ms
		self._handle: typing.Optional[jambuddy.clock.Cancellable] = None

	@property
	def pending (self) -> bool:

		return self._handle is not None

	def note_activity (self) -> bool:

		"""Restart the silence countdown.  Returns ``True`` if a timer was armed."""

		self.cancel()

		if not self._state.ai_active or not self._state.human_turn:
			return False

		if self._recorder.is_empty():
			return False

		self._handle = self._clock.call_later(self.threshold_ms, self._fire)
		logger.debug(f"Inactivity timer armed for {self.threshold_ms:.0f} ms")

		return True

	def cancel (self) -> None:

		if self._handle is not None:
			self._handle.cancel()
			self._handle = None

	def _fire (self) -> typing.Any:

		self._handle = None
		logger.debug("Inactivity threshold reached")

		return self._trigger()
