"""Timing, pitch and keyboard constants.

The pipeline works in three time bases:

- **Recording slots** - every recorded human note occupies one fixed slot of
  ``SLOT_SECONDS`` regardless of how fast it was actually played.
- **Model steps** - the generative model answers in quantized steps.  At
  ``STEPS_PER_QUARTER = 4`` and 120 BPM one step lasts ``MS_PER_STEP``.
- **Wall clock** - playback offsets and the inactivity threshold are plain
  milliseconds.

The playable instrument is a contiguous chromatic span from C4 (60) to F5 (77)
laid out on the home rows of a computer keyboard.
"""

# Recording and request building

SLOT_SECONDS = 0.5
REQUEST_VELOCITY = 80
STEPS_PER_QUARTER = 4

# Generation policy

RESPONSE_STEPS = 50
TEMPERATURE = 1.1

# Wall-clock timing (milliseconds)

INACTIVITY_THRESHOLD_MS = 2000
MS_PER_STEP = 125
SETTLE_MS = 500

# Playable span

LOWEST_PITCH = 60
HIGHEST_PITCH = 77
PLAYABLE_PITCHES = tuple(range(LOWEST_PITCH, HIGHEST_PITCH + 1))

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Computer keyboard -> MIDI pitch.  White keys on the home row, black keys on the row above.

KEY_MAP = {
	"a": 60, "w": 61, "s": 62, "e": 63, "d": 64, "f": 65, "t": 66, "g": 67, "y": 68,
	"h": 69, "u": 70, "j": 71, "k": 72, "o": 73, "l": 74, "p": 75, ";": 76, "'": 77,
}

# MIDI

DEFAULT_CHANNEL = 0
DEFAULT_VELOCITY = 100
MIN_VELOCITY = 0
MAX_VELOCITY = 127


def note_name (pitch: int) -> str:

	"""Convert a MIDI note number to a name such as ``"C#4"`` (C4 = 60)."""

	octave = (pitch // 12) - 1
	return f"{NOTE_NAMES[pitch % 12]}{octave}"
