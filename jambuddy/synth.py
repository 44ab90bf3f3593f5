"""Audio engine capability and its MIDI implementation.

The pipeline never makes sound itself.  It calls an ``AudioEngine``:

- ``attack(pitch)`` / ``release(pitch)`` for human keys, which sustain for as
  long as they are held;
- ``attack_release(pitch, duration)`` for AI notes, which have a known length.

``MidiSynth`` implements the engine by sending note messages through a
``mido`` output port, so any hardware or software instrument can voice the
session.
"""

import logging
import typing

import mido

import jambuddy.clock
import jambuddy.constants
import jambuddy.midi_utils


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class AudioEngine (typing.Protocol):

	"""Capability contract for whatever voices the notes."""

	def attack (self, pitch: int) -> None:

		...

	def release (self, pitch: int) -> None:

		...

	def attack_release (self, pitch: int, duration: float) -> None:

		"""Play *pitch* for *duration* seconds."""

		...

	def all_off (self) -> None:

		...


class MidiSynth:

	"""
	An ``AudioEngine`` that drives a MIDI output port.

	Timed releases are scheduled on the session clock.  Re-attacking a pitch
	that is still sounding from an earlier timed note first ends that note and
	drops its pending release, so the earlier release cannot cut the new note
	short.
	"""

	def __init__ (
		self,
		clock: jambuddy.clock.Clock,
		output_device_name: typing.Optional[str] = None,
		channel: int = jambuddy.constants.DEFAULT_CHANNEL,
		velocity: int = jambuddy.constants.DEFAULT_VELOCITY,
		midi_out: typing.Optional[typing.Any] = None
	) -> None:

		"""
		Parameters:
			clock: Dispatcher for timed releases.
			output_device_name: Port to open.  Ignored when *midi_out* is given.
			channel: MIDI channel (0-15).
			velocity: Note-on velocity (1-127).
			midi_out: An already opened port.
		"""

		if not 0 <= channel <= 15:
			raise ValueError("MIDI channel must be between 0 and 15")

		if not 1 <= velocity <= jambuddy.constants.MAX_VELOCITY:
			raise ValueError("Velocity must be between 1 and 127")

		self._clock = clock
		self.channel = channel
		self.velocity = velocity
		self.output_device_name = output_device_name
		self.midi_out = midi_out
		self.sounding: typing.Set[int] = set()
		self._pending_releases: typing.Dict[int, jambuddy.clock.Cancellable] = {}

		if self.midi_out is None:
			device_name, port = jambuddy.midi_utils.select_output_device(output_device_name)
			if device_name:
				self.output_device_name = device_name
				self.midi_out = port

	def attack (self, pitch: int) -> None:

		self._cancel_pending_release(pitch)

		if pitch in self.sounding:
			self._send('note_off', pitch, 0)

		self._send('note_on', pitch, self.velocity)
		self.sounding.add(pitch)

	def release (self, pitch: int) -> None:

		self._cancel_pending_release(pitch)

		if pitch not in self.sounding:
			return

		self._send('note_off', pitch, 0)
		self.sounding.discard(pitch)

	def attack_release (self, pitch: int, duration: float) -> None:

		self.attack(pitch)
		self._pending_releases[pitch] = self._clock.call_later(max(0.0, duration) * 1000.0, lambda: self._timed_release(pitch))

	def all_off (self) -> None:

		"""Silence every sounding note and drop all pending releases."""

		for pitch in list(self._pending_releases):
			self._cancel_pending_release(pitch)

		for pitch in sorted(self.sounding):
			self._send('note_off', pitch, 0)

		self.sounding.clear()

	def close (self) -> None:

		self.all_off()

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

	def _timed_release (self, pitch: int) -> None:

		self._pending_releases.pop(pitch, None)

		if pitch in self.sounding:
			self._send('note_off', pitch, 0)
			self.sounding.discard(pitch)

	def _cancel_pending_release (self, pitch: int) -> None:

		handle = self._pending_releases.pop(pitch, None)

		if handle is not None:
			handle.cancel()

	def _send (self, message_type: str, pitch: int, velocity: int) -> None:

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(mido.Message(message_type, channel=self.channel, note=pitch, velocity=velocity))
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")
