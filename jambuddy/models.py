"""Built-in generative model.

``MarkovModel`` satisfies the ``GenerativeModel`` contract without any ML
backend, so a session runs out of the box.  It learns pitch transitions from
the request, smooths them with small steps so the answer can move beyond what
was played, and walks the resulting chain.  Durations come from a fixed
weighted palette of step lengths.  Temperature flattens (> 1) or sharpens
(< 1) both choices.

Any object with ``initialize()`` and ``continue_sequence()`` coroutines can be
used in its place.
"""

import logging
import random
import typing

import jambuddy.bridge
import jambuddy.constants
import jambuddy.markov_chain


logger = logging.getLogger(__name__)


# (step length, weight): mostly eighths and quarters at four steps per quarter.
DEFAULT_RHYTHM: typing.Tuple[typing.Tuple[int, float], ...] = ((1, 1.0), (2, 4.0), (4, 3.0), (8, 1.0))

# (interval, weight) moves offered from every pitch in addition to learned ones.
DEFAULT_STEPS: typing.Tuple[typing.Tuple[int, float], ...] = ((-2, 0.5), (-1, 0.25), (1, 0.25), (2, 0.5))


class MarkovModel:

	"""
	A small pitch Markov chain that continues a melody.

	Parameters:
		seed: Makes every continuation repeatable.
		lowest, highest: Pitch range the answer stays within.
		rhythm: ``(steps, weight)`` palette for note lengths.
		moves: ``(interval, weight)`` smoothing moves from every pitch.
	"""

	def __init__ (
		self,
		seed: typing.Optional[int] = None,
		lowest: int = jambuddy.constants.LOWEST_PITCH,
		highest: int = jambuddy.constants.HIGHEST_PITCH,
		rhythm: typing.Sequence[typing.Tuple[int, float]] = DEFAULT_RHYTHM,
		moves: typing.Sequence[typing.Tuple[int, float]] = DEFAULT_STEPS
	) -> None:

		if lowest > highest:
			raise ValueError("Lowest pitch cannot be above highest pitch")

		if not rhythm or any(steps <= 0 for steps, _ in rhythm):
			raise ValueError("Rhythm palette must contain positive step lengths")

		self.rng = random.Random(seed)
		self.lowest = lowest
		self.highest = highest
		self.rhythm = tuple(rhythm)
		self.moves = tuple(moves)
		self.ready = False

	async def initialize (self) -> None:

		self.ready = True

	def _clamp (self, pitch: int) -> int:

		return min(self.highest, max(self.lowest, pitch))

	def _neighbours (self, pitch: int) -> typing.List[typing.Tuple[int, float]]:

		options: typing.Dict[int, float] = {}

		for interval, weight in self.moves:
			target = pitch + interval
			if self.lowest <= target <= self.highest:
				options[target] = options.get(target, 0.0) + weight

		return list(options.items())

	async def continue_sequence (self, request: jambuddy.bridge.DiscretizedRequest, steps: int, temperature: float) -> jambuddy.bridge.GeneratedSequence:

		"""
		Generate notes filling *steps* quantized steps after *request*.

		Step positions in the result start at zero, the first step after the
		request.
		"""

		if not self.ready:
			raise RuntimeError("MarkovModel.initialize() has not been awaited")

		if steps <= 0:
			raise ValueError("Steps must be positive")

		if not request.notes:
			return jambuddy.bridge.GeneratedSequence()

		pitches = [self._clamp(note.pitch) for note in request.notes]

		chain = jambuddy.markov_chain.MarkovChain.learn(
			pitches,
			rng = self.rng,
			temperature = temperature,
			smoothing = self._neighbours
		)

		rhythm = jambuddy.markov_chain.apply_temperature(self.rhythm, temperature)
		notes: typing.List[jambuddy.bridge.GeneratedNote] = []
		position = 0

		while position < steps:
			length = min(jambuddy.markov_chain.choose_weighted(rhythm, self.rng), steps - position)
			notes.append(jambuddy.bridge.GeneratedNote(
				pitch = chain.step(),
				quantized_start_step = position,
				quantized_end_step = position + length
			))
			position += length

		logger.debug(f"Generated {len(notes)} notes from {len(pitches)} seed notes")

		return jambuddy.bridge.GeneratedSequence(notes=tuple(notes))
