import asyncio
import logging
import signal
import typing

import jambuddy.bridge
import jambuddy.clock
import jambuddy.constants
import jambuddy.display
import jambuddy.errors
import jambuddy.event_emitter
import jambuddy.gate
import jambuddy.inactivity
import jambuddy.keystroke
import jambuddy.midi_utils
import jambuddy.playback
import jambuddy.recorder
import jambuddy.state
import jambuddy.synth
import jambuddy.web_ui


logger = logging.getLogger(__name__)


_TOGGLE_KEY = " "
_HELP_KEY = "?"


class Session:

	"""
	One call-and-response session: a piano, a silence timer and a model.

	The `Session` owns the shared ``SessionState`` and wires the pipeline
	together: human input is recorded, silence triggers the ``TurnGate``, the
	``SequenceBridge`` asks the model for a continuation, and the
	``PlaybackScheduler`` plays it back before handing the turn back.

	All input goes through the same handlers whichever front end produced it
	(terminal keys, a MIDI keyboard, a web client).  The handlers check the
	turn before doing anything, so input during the AI turn is simply ignored.

	Typical workflow:
	1. Create a `Session` with a generative model.
	2. Enable front ends (``display()``, ``hotkeys()``, ``midi_input()``, ``web_ui()``).
	3. Call ``play()``.

	Events (register with ``on_event``): ``status``, ``highlight_start``,
	``highlight_stop``, ``turn_started``, ``turn_finished``.
	"""

	def __init__ (
		self,
		model: jambuddy.bridge.GenerativeModel,
		synth: typing.Optional[jambuddy.synth.AudioEngine] = None,
		clock: typing.Optional[jambuddy.clock.Clock] = None,
		output_device: typing.Optional[str] = None,
		channel: int = jambuddy.constants.DEFAULT_CHANNEL,
		ai_enabled: bool = True,
		inactivity_ms: float = jambuddy.constants.INACTIVITY_THRESHOLD_MS,
		steps: int = jambuddy.constants.RESPONSE_STEPS,
		temperature: float = jambuddy.constants.TEMPERATURE,
		key_map: typing.Optional[typing.Dict[str, int]] = None
	) -> None:

		"""
		Parameters:
			model: The generative model (see ``GenerativeModel``).
			synth: Audio engine.  Defaults to a ``MidiSynth`` on *output_device*.
			clock: Dispatcher for all deferred actions.  Defaults to an
				``AsyncioClock``; tests pass a ``VirtualClock``.
			output_device: MIDI output port for the default synth.
			channel: MIDI channel for the default synth.
			ai_enabled: Initial position of the AI toggle.
			inactivity_ms: Silence before the AI answers.
			steps: Length of the requested continuation, in model steps.
			temperature: Randomness passed to the model.
			key_map: Computer key -> pitch layout.
		"""

		self.clock: jambuddy.clock.Clock = clock if clock is not None else jambuddy.clock.AsyncioClock()

		# A synth the session opened itself is closed by the session.
		self._own_synth: typing.Optional[jambuddy.synth.MidiSynth] = None

		if synth is None:
			self._own_synth = jambuddy.synth.MidiSynth(self.clock, output_device_name=output_device, channel=channel)

		self.synth: jambuddy.synth.AudioEngine = synth if synth is not None else self._own_synth

		self.key_map = dict(key_map if key_map is not None else jambuddy.constants.KEY_MAP)
		self.playable = jambuddy.constants.PLAYABLE_PITCHES

		self.state = jambuddy.state.SessionState(ai_enabled=ai_enabled)
		self.events = jambuddy.event_emitter.EventEmitter()

		self.recorder = jambuddy.recorder.NoteRecorder(self.state)
		self.bridge = jambuddy.bridge.SequenceBridge(model, steps=steps, temperature=temperature)
		self.playback = jambuddy.playback.PlaybackScheduler(self.clock, self.synth, self.events, playable=self.playable)

		self.gate = jambuddy.gate.TurnGate(
			state = self.state,
			recorder = self.recorder,
			bridge = self.bridge,
			playback = self.playback,
			synth = self.synth,
			events = self.events
		)

		self.inactivity = jambuddy.inactivity.InactivityScheduler(
			state = self.state,
			recorder = self.recorder,
			clock = self.clock,
			trigger = self.gate.begin_turn,
			threshold_ms = inactivity_ms
		)

		self.gate.inactivity = self.inactivity
		self._model_failed = False

		# Front ends, enabled by the methods below before play().
		self._display: typing.Optional[jambuddy.display.Display] = None
		self._key_reader: typing.Optional[jambuddy.keystroke.TerminalKeyReader] = None
		self._key_releases: typing.Dict[str, jambuddy.clock.Cancellable] = {}
		self._hotkey_hold_ms: float = 250.0
		self._input_device: typing.Optional[str] = None
		self._midi_in: typing.Any = None
		self._web_ui: typing.Optional[jambuddy.web_ui.WebUI] = None
		self._stop_event: typing.Optional[asyncio.Event] = None

	@property
	def turn (self) -> jambuddy.state.TurnState:

		return self.state.turn

	@property
	def status (self) -> jambuddy.state.Status:

		return self.state.status

	@property
	def ai_enabled (self) -> bool:

		return self.state.ai_enabled

	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""Register a callback for a session event."""

		self.events.on(event_name, callback)

	def _publish (self, status: jambuddy.state.Status) -> None:

		self.state.status = status
		self.events.emit("status", status)

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	async def start (self) -> bool:

		"""
		Initialize the model.

		On failure the session stays playable with AI replies unavailable.

		Returns:
			``True`` if the model is ready.
		"""

		self._publish(jambuddy.state.Status.LOADING)

		try:
			await self.bridge.initialize()

		except jambuddy.errors.ModelUnavailable as exc:
			logger.error(f"{exc} - AI replies are unavailable, the piano still plays")
			self.state.model_ready = False
			self._model_failed = True
			self._publish(jambuddy.state.Status.ERROR)
			return False

		self.state.model_ready = True
		self._model_failed = False
		self._publish(jambuddy.state.Status.READY if self.state.ai_enabled else jambuddy.state.Status.OFF)

		return True

	def close (self) -> None:

		"""
		Cancel every pending timer and silence the instrument.

		A MIDI synth the session opened itself is also closed, releasing its
		port.  A synth passed in by the caller is only silenced.
		"""

		self.inactivity.cancel()
		self.playback.cancel()

		for handle in self._key_releases.values():
			handle.cancel()
		self._key_releases.clear()

		for pitch in self.state.drain_held():
			self.synth.release(pitch)

		if self._own_synth is not None:
			self._own_synth.close()
		else:
			self.synth.all_off()

	def stop (self) -> None:

		"""Ask a running ``play()`` to shut down."""

		if self._stop_event is not None:
			self._stop_event.set()

	# ------------------------------------------------------------------
	# Input
	# ------------------------------------------------------------------

	def note_on (self, pitch: int) -> bool:

		"""
		Handle a human key press.

		Returns:
			``False`` if the press was ignored (AI turn or unplayable pitch).
		"""

		if not self.state.human_turn:
			return False

		if pitch not in self.playable:
			logger.debug(f"Ignoring unplayable pitch {pitch}")
			return False

		if self.state.hold(pitch):
			self.synth.attack(pitch)

		self.events.emit("highlight_start", pitch, "human")

		self.inactivity.cancel()
		self.recorder.record(pitch, self.clock.now() / 1000.0)

		return True

	def note_off (self, pitch: int) -> bool:

		"""
		Handle a human key release.

		Once the last held key is released the silence countdown starts.
		"""

		if not self.state.human_turn:
			return False

		if pitch not in self.playable:
			return False

		if self.state.unhold(pitch):
			self.synth.release(pitch)

		self.events.emit("highlight_stop", pitch, "human")

		if not self.state.active_notes:
			self.inactivity.note_activity()

		return True

	def key_down (self, key: str, repeat: bool = False) -> bool:

		"""Handle a computer key press.  Auto-repeat presses are ignored."""

		pitch = self.key_map.get(key.lower())

		if pitch is None or repeat:
			return False

		return self.note_on(pitch)

	def key_up (self, key: str) -> bool:

		pitch = self.key_map.get(key.lower())

		if pitch is None:
			return False

		return self.note_off(pitch)

	def pointer_down (self, pitch: int) -> bool:

		return self.note_on(pitch)

	def pointer_up (self, pitch: int) -> bool:

		return self.note_off(pitch)

	def pointer_leave (self, pitch: int) -> bool:

		"""A pointer sliding off a key releases it."""

		return self.note_off(pitch)

	# ------------------------------------------------------------------
	# Toggle
	# ------------------------------------------------------------------

	def set_ai_enabled (self, enabled: bool) -> None:

		"""
		Switch AI replies on or off.

		Switching off never interrupts an AI turn that is already playing; it
		only stops new turns from starting.  Switching on discards whatever was
		played while the AI was off; during a reply it only restores the
		reply's status.
		"""

		self.state.ai_enabled = enabled

		if not enabled:
			self.inactivity.cancel()
			self._publish(jambuddy.state.Status.OFF)
			logger.info("AI replies off" + (" after the current reply" if not self.state.human_turn else ""))
			return

		if self.state.human_turn:
			self.recorder.clear()

		if self._model_failed:
			self._publish(jambuddy.state.Status.ERROR)
		elif not self.state.human_turn:
			self._publish(jambuddy.state.Status.LISTENING)
		elif self.state.model_ready:
			self._publish(jambuddy.state.Status.READY)

		logger.info("AI replies on")

	def toggle_ai (self) -> bool:

		"""Flip the AI toggle and return its new position."""

		self.set_ai_enabled(not self.state.ai_enabled)

		return self.state.ai_enabled

	# ------------------------------------------------------------------
	# Front ends
	# ------------------------------------------------------------------

	def display (self, enabled: bool = True) -> None:

		"""Show a live status line on the terminal."""

		self._display = jambuddy.display.Display(self) if enabled else None

	def hotkeys (self, enabled: bool = True, hold_ms: float = 250.0) -> None:

		"""
		Play the piano from the terminal.

		A terminal only reports key presses, so each press is held for
		*hold_ms* and then released.  Space toggles AI replies and ``?``
		lists the key layout.
		"""

		if hold_ms <= 0:
			raise ValueError("Hold time must be positive")

		self._key_reader = jambuddy.keystroke.TerminalKeyReader(self._on_terminal_key) if enabled else None
		self._hotkey_hold_ms = hold_ms

	def midi_input (self, device: str) -> None:

		"""Play the piano from a MIDI keyboard."""

		self._input_device = device

	def web_ui (self, ws_port: int = 8765) -> None:

		"""Accept input from, and publish events to, WebSocket clients."""

		self._web_ui = jambuddy.web_ui.WebUI(self, ws_port=ws_port)

	def _on_terminal_key (self, char: str) -> None:

		"""
		Handle one terminal key press as a tap of the hotkey hold time.

		Tapping a key again before its release ends the earlier tap first, so
		the repeat sounds as a new note with a single release after it.
		"""

		if char == _TOGGLE_KEY:
			self.toggle_ai()
			return

		if char == _HELP_KEY:
			self._list_keys()
			return

		key = char.lower()
		pending = self._key_releases.pop(key, None)

		if pending is not None:
			pending.cancel()
			self.key_up(key)

		if self.key_down(key):
			self._key_releases[key] = self.clock.call_later(self._hotkey_hold_ms, lambda: self._end_tap(key))

	def _end_tap (self, key: str) -> None:

		self._key_releases.pop(key, None)
		self.key_up(key)

	def _list_keys (self) -> None:

		layout = "  ".join(f"{key}={jambuddy.constants.note_name(pitch)}" for key, pitch in self.key_map.items())
		logger.info(f"Keys: {layout}  [space]=toggle AI")

	def _on_midi_message (self, message: typing.Any) -> None:

		"""Route a MIDI keyboard message; runs on the event loop."""

		if message.type == 'note_on' and message.velocity > 0:
			self.note_on(message.note)

		elif message.type == 'note_off' or (message.type == 'note_on' and message.velocity == 0):
			self.note_off(message.note)

	def play (self) -> None:

		"""
		Run the session until interrupted (e.g. with Ctrl+C).
		"""

		try:
			asyncio.run(self._run())

		except KeyboardInterrupt:
			pass

	async def _run (self) -> None:

		"""Async entry point: start front ends, load the model and wait until stopped."""

		loop = asyncio.get_running_loop()
		self._stop_event = asyncio.Event()

		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.add_signal_handler(sig, self._stop_event.set)

		if self._display is not None:
			self._display.start()

		if self._web_ui is not None:
			await self._web_ui.start()

		if self._input_device is not None:
			_, self._midi_in = jambuddy.midi_utils.select_input_device(
				self._input_device,
				lambda message: loop.call_soon_threadsafe(self._on_midi_message, message)
			)

		if self._key_reader is not None:
			self._key_reader.start(loop)

		try:
			await self.start()

			logger.info("Play a melody, then pause and let the AI answer. Press Ctrl+C to stop.")

			await self._stop_event.wait()

		finally:
			for sig in (signal.SIGINT, signal.SIGTERM):
				loop.remove_signal_handler(sig)

			if self._key_reader is not None:
				self._key_reader.stop()

			self.close()

			if self._midi_in is not None:
				self._midi_in.close()
				self._midi_in = None

			if self._web_ui is not None:
				await self._web_ui.stop()

			if self._display is not None:
				self._display.stop()

			logger.info("Session stopped")
