import typing

import mido
import pytest

import jambuddy.bridge
import jambuddy.clock
import jambuddy.session


class FakeMidiOut:

	"""MIDI output stub that remembers what was sent."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		self.sent.append(message)

	def close (self) -> None:

		self.closed = True


class FakeMidiIn:

	"""Minimal MIDI input stub for tests."""

	def __init__ (self, callback: typing.Optional[typing.Callable] = None) -> None:

		self.callback = callback
		self.closed = False

	def close (self) -> None:

		self.closed = True

	def inject (self, message: mido.Message) -> None:

		"""Simulate receiving a MIDI message by calling the stored callback."""

		if self.callback is not None:
			self.callback(message)


# Module-level references so tests can reach the most recently opened fake ports.
_current_fake_output: typing.Optional[FakeMidiOut] = None
_current_fake_input: typing.Optional[FakeMidiIn] = None


def _fake_get_names () -> typing.List[str]:

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	global _current_fake_output
	_current_fake_output = FakeMidiOut()
	return _current_fake_output


def _fake_open_input (name: str, callback: typing.Optional[typing.Callable] = None) -> FakeMidiIn:

	global _current_fake_input
	_current_fake_input = FakeMidiIn(callback=callback)
	return _current_fake_input


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use fake MIDI ports."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)
	monkeypatch.setattr(mido, "get_input_names", _fake_get_names)
	monkeypatch.setattr(mido, "open_input", _fake_open_input)


class RecordingSynth:

	"""Audio engine that records every call instead of making sound."""

	def __init__ (self) -> None:

		self.calls: typing.List[typing.Tuple[typing.Any, ...]] = []

	def attack (self, pitch: int) -> None:

		self.calls.append(("attack", pitch))

	def release (self, pitch: int) -> None:

		self.calls.append(("release", pitch))

	def attack_release (self, pitch: int, duration: float) -> None:

		self.calls.append(("attack_release", pitch, duration))

	def all_off (self) -> None:

		self.calls.append(("all_off",))

	def of_kind (self, kind: str) -> typing.List[typing.Tuple[typing.Any, ...]]:

		return [call for call in self.calls if call[0] == kind]


class ScriptedModel:

	"""Generative model that answers every request with the same notes."""

	def __init__ (self, notes: typing.Sequence[typing.Dict[str, int]] = (), fail_init: bool = False) -> None:

		self.response = jambuddy.bridge.GeneratedSequence.from_dicts(notes)
		self.fail_init = fail_init
		self.requests: typing.List[typing.Tuple[jambuddy.bridge.DiscretizedRequest, int, float]] = []

	async def initialize (self) -> None:

		if self.fail_init:
			raise RuntimeError("checkpoint download failed")

	async def continue_sequence (self, request: jambuddy.bridge.DiscretizedRequest, steps: int, temperature: float) -> jambuddy.bridge.GeneratedSequence:

		self.requests.append((request, steps, temperature))
		return self.response


class FailingModel (ScriptedModel):

	"""Generative model whose continuation call always raises."""

	async def continue_sequence (self, request: jambuddy.bridge.DiscretizedRequest, steps: int, temperature: float) -> jambuddy.bridge.GeneratedSequence:

		self.requests.append((request, steps, temperature))
		raise RuntimeError("model crashed")


def make_session (
	model: typing.Optional[typing.Any] = None,
	**kwargs: typing.Any
) -> typing.Tuple[jambuddy.session.Session, jambuddy.clock.VirtualClock, RecordingSynth]:

	"""Build a session on a virtual clock with a recording synth."""

	clock = jambuddy.clock.VirtualClock()
	synth = RecordingSynth()
	session = jambuddy.session.Session(model=model if model is not None else ScriptedModel(), synth=synth, clock=clock, **kwargs)

	return session, clock, synth


async def play_notes (session: jambuddy.session.Session, clock: jambuddy.clock.VirtualClock, pitches: typing.Sequence[int], hold_ms: float = 100, gap_ms: float = 100) -> None:

	"""Press and release each pitch in turn on the virtual clock."""

	for pitch in pitches:
		session.note_on(pitch)
		await clock.advance(hold_ms)
		session.note_off(pitch)
		await clock.advance(gap_ms)
