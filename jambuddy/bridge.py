"""Conversion between recorded human notes and the generative model's step grid.

The request side deliberately discards the human's real timing: each recorded
note fills exactly one ``SLOT_SECONDS`` slot in arrival order, so note *i*
spans steps ``i`` to ``i + 1`` of the request.  The response side is left in
model steps; ``PlaybackScheduler`` turns steps into milliseconds.
"""

import dataclasses
import logging
import typing

import jambuddy.constants
import jambuddy.errors
import jambuddy.recorder


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class DiscretizedNote:

	"""One slot of a model request."""

	pitch: int
	start_step: int
	end_step: int
	velocity: int
	start_time: float
	end_time: float


@dataclasses.dataclass (frozen=True)
class DiscretizedRequest:

	"""The step-grid sequence submitted to the model."""

	notes: typing.Tuple[DiscretizedNote, ...]
	total_steps: int
	total_time: float
	steps_per_quarter: int = jambuddy.constants.STEPS_PER_QUARTER


@dataclasses.dataclass (frozen=True)
class GeneratedNote:

	"""A note of the model's continuation, positioned in quantized steps."""

	pitch: int
	quantized_start_step: int
	quantized_end_step: int


@dataclasses.dataclass (frozen=True)
class GeneratedSequence:

	"""The model's continuation."""

	notes: typing.Tuple[GeneratedNote, ...] = ()

	@classmethod
	def from_dicts (cls, notes: typing.Iterable[typing.Mapping[str, typing.Any]]) -> "GeneratedSequence":

		"""Build a sequence from ``{"pitch", "start", "end"}`` or fully named mappings."""

		return cls(notes=tuple(
			GeneratedNote(
				pitch = int(note["pitch"]),
				quantized_start_step = int(note.get("quantized_start_step", note.get("start", 0))),
				quantized_end_step = int(note.get("quantized_end_step", note.get("end", 0)))
			)
			for note in notes
		))

	def __len__ (self) -> int:

		return len(self.notes)


@typing.runtime_checkable
class GenerativeModel (typing.Protocol):

	"""Capability contract for the external sequence model."""

	async def initialize (self) -> None:

		"""Load whatever the model needs.  Raise on failure."""

		...

	async def continue_sequence (self, request: DiscretizedRequest, steps: int, temperature: float) -> GeneratedSequence:

		"""Return a continuation of *request* roughly *steps* long."""

		...


def build_request (
	notes: typing.Sequence[jambuddy.recorder.NoteEvent],
	velocity: int = jambuddy.constants.REQUEST_VELOCITY,
	slot_seconds: float = jambuddy.constants.SLOT_SECONDS
) -> DiscretizedRequest:

	"""
	Lay recorded notes out on the step grid, one slot per note.

	Pitches are copied verbatim and every note gets the same *velocity*.
	"""

	discretized = tuple(
		DiscretizedNote(
			pitch = note.pitch,
			start_step = index,
			end_step = index + 1,
			velocity = velocity,
			start_time = index * slot_seconds,
			end_time = (index + 1) * slot_seconds
		)
		for index, note in enumerate(notes)
	)

	return DiscretizedRequest(
		notes = discretized,
		total_steps = len(discretized),
		total_time = len(discretized) * slot_seconds
	)


class SequenceBridge:

	"""
	The only asynchronous boundary of a turn: request in, continuation out.

	There is no retry.  A failed call is raised as ``GenerationError`` and the
	next inactivity trigger is the natural second attempt.
	"""

	def __init__ (
		self,
		model: GenerativeModel,
		steps: int = jambuddy.constants.RESPONSE_STEPS,
		temperature: float = jambuddy.constants.TEMPERATURE,
		velocity: int = jambuddy.constants.REQUEST_VELOCITY
	) -> None:

		if steps <= 0:
			raise ValueError("Response length must be positive")

		if temperature <= 0:
			raise ValueError("Temperature must be positive")

		self.model = model
		self.steps = steps
		self.temperature = temperature
		self.velocity = velocity

	async def initialize (self) -> None:

		"""Initialize the model, raising ``ModelUnavailable`` if it cannot be used."""

		try:
			await self.model.initialize()
		except Exception as exc:
			raise jambuddy.errors.ModelUnavailable(f"Model failed to initialize: {exc}") from exc

		logger.info(f"Model ready: {type(self.model).__name__}")

	async def request_continuation (self, notes: typing.Sequence[jambuddy.recorder.NoteEvent]) -> GeneratedSequence:

		"""Submit *notes* to the model and return its continuation."""

		request = build_request(notes, velocity=self.velocity)

		logger.info(f"Requesting continuation of {request.total_steps} notes ({self.steps} steps, temperature {self.temperature})")

		try:
			result = await self.model.continue_sequence(request, self.steps, self.temperature)
		except Exception as exc:
			raise jambuddy.errors.GenerationError(f"Model failed to continue the sequence: {exc}") from exc

		if not isinstance(result, GeneratedSequence):
			raise jambuddy.errors.GenerationError(f"Model returned {type(result).__name__}, expected GeneratedSequence")

		logger.info(f"Model returned {len(result.notes)} notes")

		return result
