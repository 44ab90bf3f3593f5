import logging
import typing

import jambuddy.bridge
import jambuddy.errors
import jambuddy.event_emitter
import jambuddy.inactivity
import jambuddy.playback
import jambuddy.recorder
import jambuddy.state
import jambuddy.synth


logger = logging.getLogger(__name__)


class TurnGate:

	"""
	Two-state exclusion between the human and the AI.

	``begin_turn()`` is the inactivity trigger.  It hands the turn to the AI
	only when the AI is enabled and ready, there is something to answer, and
	the human currently has the turn; anything else is a silent no-op, which
	also makes a second trigger during an AI turn harmless.

	The AI keeps the turn until playback signals completion, or until the
	model call fails.  Either way the recorder buffer is cleared and the human
	gets the turn back.

	Events emitted: ``status`` (``Status``), ``turn_started`` (note count),
	``turn_finished`` (``True`` on success, ``False`` on failure).
	"""

	def __init__ (
		self,
		state: jambuddy.state.SessionState,
		recorder: jambuddy.recorder.NoteRecorder,
		bridge: jambuddy.bridge.SequenceBridge,
		playback: jambuddy.playback.PlaybackScheduler,
		synth: jambuddy.synth.AudioEngine,
		events: jambuddy.event_emitter.EventEmitter
	) -> None:

		self._state = state
		self._recorder = recorder
		self._bridge = bridge
		self._playback = playback
		self._synth = synth
		self._events = events
		self.inactivity: typing.Optional[jambuddy.inactivity.InactivityScheduler] = None

	@property
	def turn (self) -> jambuddy.state.TurnState:

		return self._state.turn

	def can_begin (self) -> bool:

		return self._state.ai_active and self._state.human_turn and not self._recorder.is_empty()

	async def begin_turn (self) -> bool:

		"""
		Hand the turn to the AI, request a continuation and schedule its playback.

		Returns:
			``True`` if an AI turn was started (whether or not the model then
			succeeded), ``False`` if the guards refused it.
		"""

		if not self.can_begin():
			logger.debug("AI turn refused")
			return False

		self._enter_ai_turn()

		notes = self._recorder.drain()

		self._events.emit("turn_started", len(notes))

		try:
			generated = await self._bridge.request_continuation(notes)

		except jambuddy.errors.GenerationError as exc:
			logger.warning(f"AI turn aborted: {exc}")
			self._exit_ai_turn(success=False)
			return True

		self._playback.play(generated, on_complete=lambda: self._exit_ai_turn(success=True))

		return True

	def _enter_ai_turn (self) -> None:

		self._state.turn = jambuddy.state.TurnState.AI

		if self.inactivity is not None:
			self.inactivity.cancel()

		# The timer can fire while keys are still down; nothing may keep sounding into the AI turn.
		for pitch in self._state.drain_held():
			self._synth.release(pitch)
			self._events.emit("highlight_stop", pitch, "human")

		self._publish(jambuddy.state.Status.LISTENING)

		logger.info("AI turn started")

	def _exit_ai_turn (self, success: bool) -> None:

		self._recorder.clear()
		self._state.turn = jambuddy.state.TurnState.HUMAN

		if not success:
			self._publish(jambuddy.state.Status.ERROR)
		elif self._state.ai_enabled:
			self._publish(jambuddy.state.Status.YOUR_TURN)
		else:
			self._publish(jambuddy.state.Status.OFF)

		self._events.emit("turn_finished", success)

		logger.info("Human turn restored")

	def _publish (self, status: jambuddy.state.Status) -> None:

		self._state.status = status
		self._events.emit("status", status)
