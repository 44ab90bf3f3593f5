"""Scheduling of the model's continuation against the session clock.

Each generated note becomes a ``ScheduledPlaybackEvent``: a millisecond offset
from the start of playback and a duration in seconds, both derived from the
model's quantized steps at ``MS_PER_STEP`` per step.  Every event is its own
deferred action on the clock, so notes fire independently and in offset order.

A note also lights its key.  Highlights are tracked per key: a second note on
the same key cancels the first note's pending clear and restarts the
highlight, so rapid repeats neither leave a key stuck on nor switch it off
early.

Once the last note has finished, a short settle period lets the final sound
and highlight die away before completion is signalled.
"""

import dataclasses
import logging
import typing

import jambuddy.bridge
import jambuddy.clock
import jambuddy.constants
import jambuddy.event_emitter
import jambuddy.synth


logger = logging.getLogger(__name__)


def nearest_playable_pitch (pitch: float, playable: typing.Sequence[int] = jambuddy.constants.PLAYABLE_PITCHES) -> int:

	"""
	Snap *pitch* to the closest pitch the instrument can play.

	Candidates are scanned in ascending order and replaced only when strictly
	closer, so on a tie the lower candidate wins.

	Examples: with a playable span of 60-77, 58 -> 60, 79 -> 77, 64 -> 64.
	"""

	if not playable:
		raise ValueError("Playable pitch set cannot be empty")

	candidates = sorted(playable)
	best = candidates[0]

	for candidate in candidates[1:]:
		if abs(candidate - pitch) < abs(best - pitch):
			best = candidate

	return best


@dataclasses.dataclass (frozen=True)
class ScheduledPlaybackEvent:

	"""
	One AI note, positioned relative to the start of playback.

	Attributes:
		pitch: Pitch as generated by the model.
		offset_ms: Delay from the start of playback.
		duration_sec: How long the note sounds.
		playable_pitch: *pitch* snapped onto the instrument.
	"""

	pitch: int
	offset_ms: int
	duration_sec: float
	playable_pitch: int

	@property
	def end_offset_ms (self) -> float:

		return self.offset_ms + self.duration_sec * 1000.0


def to_playback_events (
	generated: jambuddy.bridge.GeneratedSequence,
	ms_per_step: int = jambuddy.constants.MS_PER_STEP,
	playable: typing.Sequence[int] = jambuddy.constants.PLAYABLE_PITCHES
) -> typing.List[ScheduledPlaybackEvent]:

	"""
	Convert a continuation from steps to wall-clock offsets.

	Notes that would have a zero or negative duration are dropped with a
	warning.
	"""

	events: typing.List[ScheduledPlaybackEvent] = []

	for note in generated.notes:

		offset_ms = note.quantized_start_step * ms_per_step
		duration_ms = (note.quantized_end_step - note.quantized_start_step) * ms_per_step

		if offset_ms < 0 or duration_ms <= 0:
			logger.warning(f"Skipping generated note with invalid timing: {note}")
			continue

		events.append(ScheduledPlaybackEvent(
			pitch = note.pitch,
			offset_ms = offset_ms,
			duration_sec = duration_ms / 1000.0,
			playable_pitch = nearest_playable_pitch(note.pitch, playable)
		))

	return events


class PlaybackScheduler:

	"""
	Plays a continuation through the audio engine and the presentation layer.

	Emits ``highlight_start`` and ``highlight_stop`` with ``(pitch, "ai")``.
	"""

	def __init__ (
		self,
		clock: jambuddy.clock.Clock,
		synth: jambuddy.synth.AudioEngine,
		events: jambuddy.event_emitter.EventEmitter,
		playable: typing.Sequence[int] = jambuddy.constants.PLAYABLE_PITCHES,
		ms_per_step: int = jambuddy.constants.MS_PER_STEP,
		settle_ms: float = jambuddy.constants.SETTLE_MS
	) -> None:

		if ms_per_step <= 0:
			raise ValueError("Step duration must be positive")

		if settle_ms < 0:
			raise ValueError("Settle time cannot be negative")

		self._clock = clock
		self._synth = synth
		self._events = events
		self.playable = tuple(sorted(playable))
		self.ms_per_step = ms_per_step
		self.settle_ms = settle_ms

		self._note_handles: typing.List[jambuddy.clock.Cancellable] = []
		self._highlights: typing.Dict[int, jambuddy.clock.Cancellable] = {}
		self._completion: typing.Optional[jambuddy.clock.Cancellable] = None

	@property
	def playing (self) -> bool:

		return self._completion is not None

	def play (self, generated: jambuddy.bridge.GeneratedSequence, on_complete: jambuddy.clock.Action) -> typing.List[ScheduledPlaybackEvent]:

		"""
		Schedule every note of *generated* and call *on_complete* afterwards.

		*on_complete* runs ``settle_ms`` after the latest note end, or straight
		away when there is nothing to play.

		Returns:
			The scheduled events, in the order the model listed them.
		"""

		events = to_playback_events(generated, self.ms_per_step, self.playable)

		if not events:
			logger.info("Continuation is empty; nothing to play")
			on_complete()
			return events

		max_end_offset_ms = 0.0

		for event in events:
			self._note_handles.append(self._clock.call_later(event.offset_ms, lambda event=event: self._play_event(event)))
			max_end_offset_ms = max(max_end_offset_ms, event.end_offset_ms)
			logger.debug(f"Scheduled {jambuddy.constants.note_name(event.playable_pitch)} at {event.offset_ms} ms for {event.duration_sec:.3f} s")

		self._completion = self._clock.call_later(max_end_offset_ms + self.settle_ms, lambda: self._complete(on_complete))

		logger.info(f"Playing {len(events)} notes over {max_end_offset_ms:.0f} ms")

		return events

	def cancel (self) -> None:

		"""Drop every pending note, highlight clear and completion."""

		for handle in self._note_handles:
			handle.cancel()

		self._note_handles = []

		for pitch in list(self._highlights):
			self._clear_highlight(pitch)

		if self._completion is not None:
			self._completion.cancel()
			self._completion = None

	def _play_event (self, event: ScheduledPlaybackEvent) -> None:

		pitch = event.playable_pitch

		self._synth.attack_release(pitch, event.duration_sec)

		previous = self._highlights.pop(pitch, None)

		if previous is not None:
			previous.cancel()
			self._events.emit("highlight_stop", pitch, "ai")

		self._events.emit("highlight_start", pitch, "ai")
		self._highlights[pitch] = self._clock.call_later(event.duration_sec * 1000.0, lambda: self._clear_highlight(pitch))

	def _clear_highlight (self, pitch: int) -> None:

		handle = self._highlights.pop(pitch, None)

		if handle is None:
			return

		handle.cancel()
		self._events.emit("highlight_stop", pitch, "ai")

	def _complete (self, on_complete: jambuddy.clock.Action) -> typing.Any:

		self._completion = None
		self._note_handles = []

		return on_complete()
