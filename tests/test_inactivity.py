import pytest

import jambuddy.clock
import jambuddy.inactivity
import jambuddy.recorder
import jambuddy.state


def _make_scheduler (threshold_ms: float = 2000) -> tuple[jambuddy.inactivity.InactivityScheduler, jambuddy.state.SessionState, jambuddy.recorder.NoteRecorder, jambuddy.clock.VirtualClock, list[float]]:

	state = jambuddy.state.SessionState(model_ready=True)
	recorder = jambuddy.recorder.NoteRecorder(state)
	clock = jambuddy.clock.VirtualClock()
	fired: list[float] = []

	scheduler = jambuddy.inactivity.InactivityScheduler(
		state = state,
		recorder = recorder,
		clock = clock,
		trigger = lambda: fired.append(clock.now()),
		threshold_ms = threshold_ms
	)

	return scheduler, state, recorder, clock, fired


@pytest.mark.asyncio
async def test_fires_once_after_threshold () -> None:

	scheduler, _, recorder, clock, fired = _make_scheduler()
	recorder.record(60, 0.0)

	assert scheduler.note_activity() is True
	assert scheduler.pending

	await clock.advance(1999)
	assert fired == []

	await clock.advance(1)
	assert fired == [2000]
	assert not scheduler.pending

	await clock.advance(10000)
	assert fired == [2000]


@pytest.mark.asyncio
async def test_rearming_debounces_bursts () -> None:

	"""Repeated activity collapses into one trigger after the last call."""

	scheduler, _, recorder, clock, fired = _make_scheduler()
	recorder.record(60, 0.0)

	scheduler.note_activity()
	await clock.advance(1500)
	scheduler.note_activity()
	await clock.advance(1500)
	scheduler.note_activity()
	await clock.advance(2000)

	assert fired == [5000]
	assert clock.pending == 0


@pytest.mark.asyncio
async def test_no_timer_for_empty_buffer () -> None:

	scheduler, _, _, clock, fired = _make_scheduler()

	assert scheduler.note_activity() is False

	await clock.advance(5000)
	assert fired == []


@pytest.mark.asyncio
async def test_no_timer_when_disabled_or_model_missing () -> None:

	scheduler, state, recorder, clock, fired = _make_scheduler()
	recorder.record(60, 0.0)

	state.ai_enabled = False
	assert scheduler.note_activity() is False

	state.ai_enabled = True
	state.model_ready = False
	assert scheduler.note_activity() is False

	await clock.advance(5000)
	assert fired == []


@pytest.mark.asyncio
async def test_no_timer_during_ai_turn () -> None:

	scheduler, state, recorder, clock, fired = _make_scheduler()
	recorder.record(60, 0.0)
	state.turn = jambuddy.state.TurnState.AI

	assert scheduler.note_activity() is False


@pytest.mark.asyncio
async def test_cancel_prevents_fire () -> None:

	scheduler, _, recorder, clock, fired = _make_scheduler()
	recorder.record(60, 0.0)

	scheduler.note_activity()
	scheduler.cancel()

	await clock.advance(5000)
	assert fired == []


def test_threshold_must_be_positive () -> None:

	with pytest.raises(ValueError):
		_make_scheduler(threshold_ms=0)
