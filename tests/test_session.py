import asyncio

import mido
import pytest

import jambuddy.display
import jambuddy.session
import jambuddy.state

import conftest

from conftest import ScriptedModel, make_session, play_notes


RESPONSE = [{"pitch": 62, "start": 0, "end": 4}, {"pitch": 65, "start": 4, "end": 8}, {"pitch": 67, "start": 8, "end": 12}]


@pytest.mark.asyncio
async def test_start_publishes_loading_then_ready () -> None:

	session, _, _ = make_session()
	statuses: list[jambuddy.state.Status] = []
	session.on_event("status", statuses.append)

	assert await session.start() is True

	assert statuses == [jambuddy.state.Status.LOADING, jambuddy.state.Status.READY]
	assert session.state.model_ready


@pytest.mark.asyncio
async def test_start_with_ai_off_publishes_off () -> None:

	session, _, _ = make_session(ai_enabled=False)
	await session.start()

	assert session.status is jambuddy.state.Status.OFF


@pytest.mark.asyncio
async def test_model_init_failure_leaves_piano_playable () -> None:

	"""Without a model the piano still sounds but silence never triggers a reply."""

	model = ScriptedModel(RESPONSE, fail_init=True)
	session, clock, synth = make_session(model)

	assert await session.start() is False
	assert session.status is jambuddy.state.Status.ERROR

	await play_notes(session, clock, [60, 62])
	await clock.advance(10000)

	assert synth.of_kind("attack") == [("attack", 60), ("attack", 62)]
	assert model.requests == []
	assert session.turn is jambuddy.state.TurnState.HUMAN


@pytest.mark.asyncio
async def test_human_note_sustains_until_release () -> None:

	session, clock, synth = make_session()
	await session.start()

	highlights: list[tuple[str, int, str]] = []
	session.on_event("highlight_start", lambda p, s: highlights.append(("start", p, s)))
	session.on_event("highlight_stop", lambda p, s: highlights.append(("stop", p, s)))

	session.note_on(60)
	session.note_on(60)
	assert synth.calls == [("attack", 60)]
	assert session.state.active_notes == {60: True}

	session.note_off(60)
	assert synth.calls == [("attack", 60), ("release", 60)]
	assert session.state.active_notes == {}

	assert highlights == [("start", 60, "human"), ("start", 60, "human"), ("stop", 60, "human")]

	# Both presses are recorded.
	assert [n.pitch for n in session.recorder.notes] == [60, 60]


@pytest.mark.asyncio
async def test_timer_waits_for_all_keys_released () -> None:

	session, clock, _ = make_session()
	await session.start()

	session.note_on(60)
	session.note_on(64)
	session.note_off(60)
	assert not session.inactivity.pending

	session.note_off(64)
	assert session.inactivity.pending

	session.note_on(67)
	assert not session.inactivity.pending


@pytest.mark.asyncio
async def test_recorded_timestamps_use_session_clock () -> None:

	session, clock, _ = make_session()
	await session.start()

	await clock.advance(1250)
	session.note_on(60)

	assert session.recorder.notes[0].start_time == 1.25
	assert session.recorder.notes[0].end_time == 1.75


@pytest.mark.asyncio
async def test_input_ignored_during_ai_turn () -> None:

	session, clock, synth = make_session(ScriptedModel(RESPONSE))
	await session.start()

	await play_notes(session, clock, [60])
	await clock.advance(2000)
	assert session.turn is jambuddy.state.TurnState.AI

	calls_before = list(synth.calls)

	assert session.note_on(64) is False
	assert session.key_down("a") is False
	assert session.pointer_down(62) is False
	assert session.note_off(64) is False

	assert synth.calls == calls_before
	assert session.recorder.is_empty()
	assert not session.inactivity.pending


@pytest.mark.asyncio
async def test_unplayable_pitch_ignored () -> None:

	session, _, synth = make_session()
	await session.start()

	assert session.note_on(59) is False
	assert session.note_on(78) is False
	assert synth.calls == []


@pytest.mark.asyncio
async def test_keyboard_and_pointer_input () -> None:

	session, _, synth = make_session()
	await session.start()

	assert session.key_down("a") is True
	assert session.key_down("a", repeat=True) is False
	assert session.key_up("A") is True
	assert session.key_down("z") is False

	session.pointer_down(77)
	session.pointer_leave(77)
	session.pointer_down(76)
	session.pointer_up(76)

	assert synth.calls == [
		("attack", 60), ("release", 60),
		("attack", 77), ("release", 77),
		("attack", 76), ("release", 76),
	]


@pytest.mark.asyncio
async def test_disable_during_ai_turn_finishes_then_stays_off () -> None:

	"""Switching off mid-reply lets the reply finish but blocks later replies."""

	model = ScriptedModel(RESPONSE)
	session, clock, synth = make_session(model)
	await session.start()

	await play_notes(session, clock, [60, 64])
	await clock.advance(2000)
	assert session.turn is jambuddy.state.TurnState.AI

	session.set_ai_enabled(False)
	assert session.status is jambuddy.state.Status.OFF
	assert session.turn is jambuddy.state.TurnState.AI

	await clock.advance(3000)

	assert [call[1] for call in synth.of_kind("attack_release")] == [62, 65, 67]
	assert session.turn is jambuddy.state.TurnState.HUMAN
	assert session.status is jambuddy.state.Status.OFF

	await play_notes(session, clock, [60, 62, 64])
	assert not session.recorder.is_empty()
	assert not session.inactivity.pending

	await clock.advance(10000)
	assert len(model.requests) == 1

	session.set_ai_enabled(True)
	assert session.status is jambuddy.state.Status.READY
	assert session.recorder.is_empty()

	await play_notes(session, clock, [67])
	await clock.advance(2000)
	assert len(model.requests) == 2


@pytest.mark.asyncio
async def test_disable_cancels_pending_timer () -> None:

	model = ScriptedModel(RESPONSE)
	session, clock, _ = make_session(model)
	await session.start()

	await play_notes(session, clock, [60])
	assert session.inactivity.pending

	assert session.toggle_ai() is False
	assert not session.inactivity.pending

	await clock.advance(5000)
	assert model.requests == []


@pytest.mark.asyncio
async def test_hotkeys_press_and_release_after_hold () -> None:

	session, clock, synth = make_session()
	await session.start()
	session.hotkeys(hold_ms=250)

	for char in ("a", "x", " "):
		session._on_terminal_key(char)

	assert synth.calls == [("attack", 60)]
	assert session.ai_enabled is False

	await clock.advance(250)
	assert synth.calls == [("attack", 60), ("release", 60)]


@pytest.mark.asyncio
async def test_midi_keyboard_messages_route_to_notes () -> None:

	session, _, synth = make_session()
	await session.start()

	session._on_midi_message(mido.Message("note_on", note=64, velocity=90))
	session._on_midi_message(mido.Message("note_on", note=64, velocity=0))
	session._on_midi_message(mido.Message("note_on", note=65, velocity=90))
	session._on_midi_message(mido.Message("note_off", note=65))
	session._on_midi_message(mido.Message("control_change", control=64, value=127))

	assert synth.calls == [("attack", 64), ("release", 64), ("attack", 65), ("release", 65)]


@pytest.mark.asyncio
async def test_close_silences_everything () -> None:

	session, clock, synth = make_session(ScriptedModel(RESPONSE))
	await session.start()

	session.note_on(60)
	session.close()

	assert synth.calls[-2:] == [("release", 60), ("all_off",)]
	assert not session.inactivity.pending


def test_hotkey_hold_must_be_positive () -> None:

	session, _, _ = make_session()

	with pytest.raises(ValueError):
		session.hotkeys(hold_ms=0)


@pytest.mark.asyncio
async def test_repeated_terminal_tap_sounds_again () -> None:

	"""A second tap inside the hold time re-attacks and gets its own release."""

	session, clock, synth = make_session()
	await session.start()
	session.hotkeys(hold_ms=250)

	session._on_terminal_key("a")
	await clock.advance(100)
	session._on_terminal_key("A")

	assert synth.calls == [("attack", 60), ("release", 60), ("attack", 60)]
	assert len(session.recorder) == 2

	await clock.advance(200)
	assert synth.calls[-1] == ("attack", 60)
	assert session.state.active_notes == {60: True}

	await clock.advance(50)
	assert synth.calls[-1] == ("release", 60)
	assert session.state.active_notes == {}


@pytest.mark.asyncio
async def test_reenable_during_ai_turn_restores_listening () -> None:

	session, clock, _ = make_session(ScriptedModel(RESPONSE))
	await session.start()

	await play_notes(session, clock, [60])
	await clock.advance(2000)
	assert session.turn is jambuddy.state.TurnState.AI

	session.set_ai_enabled(False)
	session.set_ai_enabled(True)

	assert session.status is jambuddy.state.Status.LISTENING
	assert jambuddy.display.status_text(session.state) == jambuddy.display.STATUS_TEXT[jambuddy.state.Status.LISTENING]

	await clock.advance(3000)
	assert session.turn is jambuddy.state.TurnState.HUMAN
	assert session.status is jambuddy.state.Status.YOUR_TURN


@pytest.mark.asyncio
async def test_run_closes_the_midi_port_it_opened (patch_midi: None) -> None:

	session = jambuddy.session.Session(model=ScriptedModel(), output_device="Dummy MIDI")
	port = conftest._current_fake_output

	assert port is not None and not port.closed

	task = asyncio.create_task(session._run())

	for _ in range(100):
		if session.status is jambuddy.state.Status.READY:
			break
		await asyncio.sleep(0.01)

	assert session.status is jambuddy.state.Status.READY

	session.stop()
	await asyncio.wait_for(task, timeout=1.0)

	assert port.closed
	assert session.synth.midi_out is None  # type: ignore[attr-defined]


def test_close_leaves_a_caller_synth_open () -> None:

	session, _, synth = make_session()
	session.close()

	assert synth.calls == [("all_off",)]
