import jambuddy.recorder
import jambuddy.state


def _make_recorder () -> tuple[jambuddy.recorder.NoteRecorder, jambuddy.state.SessionState]:

	state = jambuddy.state.SessionState()
	return jambuddy.recorder.NoteRecorder(state), state


def test_record_appends_in_order () -> None:

	"""Notes are kept in arrival order with a fixed half-second end time."""

	recorder, _ = _make_recorder()

	recorder.record(60, 1.0)
	recorder.record(64, 1.2)

	assert [note.pitch for note in recorder.notes] == [60, 64]
	assert recorder.notes[1].start_time == 1.2
	assert recorder.notes[1].end_time == 1.7
	assert len(recorder) == 2
	assert not recorder.is_empty()


def test_drain_returns_and_clears () -> None:

	recorder, _ = _make_recorder()
	recorder.record(60, 0.0)

	drained = recorder.drain()

	assert [note.pitch for note in drained] == [60]
	assert recorder.is_empty()
	assert recorder.drain() == []


def test_record_is_ignored_during_ai_turn () -> None:

	recorder, state = _make_recorder()
	state.turn = jambuddy.state.TurnState.AI

	assert recorder.record(60, 0.0) is False
	assert recorder.is_empty()


def test_clear () -> None:

	recorder, _ = _make_recorder()
	recorder.record(60, 0.0)
	recorder.clear()

	assert recorder.is_empty()
