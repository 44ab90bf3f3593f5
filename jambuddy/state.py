"""Session-wide state shared by the pipeline components.

A single ``SessionState`` is owned by each ``Session`` and passed by reference
into the recorder, inactivity scheduler and turn gate.  Components change it
through the methods here rather than by poking each other's attributes.
"""

import dataclasses
import enum
import typing


class TurnState (enum.Enum):

	"""Who currently has control of the piano."""

	HUMAN = "human"
	AI = "ai"


class Status (enum.Enum):

	"""User-visible session status, rendered by the presentation layer."""

	LOADING = "loading"
	READY = "ready"
	LISTENING = "listening"
	YOUR_TURN = "your_turn"
	ERROR = "error"
	OFF = "off"


@dataclasses.dataclass
class SessionState:

	"""
	Mutable state for one call-and-response session.

	Attributes:
		turn: Current turn; only the ``TurnGate`` changes it.
		ai_enabled: The user-facing AI toggle.
		model_ready: ``True`` once the generative model has initialized.
		active_notes: Human keys currently held down (pitch -> ``True``).
		status: Last status published to the presentation layer.
	"""

	turn: TurnState = TurnState.HUMAN
	ai_enabled: bool = True
	model_ready: bool = False
	active_notes: typing.Dict[int, bool] = dataclasses.field(default_factory=dict)
	status: Status = Status.LOADING

	@property
	def human_turn (self) -> bool:

		return self.turn is TurnState.HUMAN

	@property
	def ai_active (self) -> bool:

		"""True when silence should lead to an AI reply."""

		return self.ai_enabled and self.model_ready

	def hold (self, pitch: int) -> bool:

		"""Mark *pitch* as held.  Returns ``False`` if it was already held."""

		if pitch in self.active_notes:
			return False

		self.active_notes[pitch] = True
		return True

	def unhold (self, pitch: int) -> bool:

		"""Mark *pitch* as released.  Returns ``False`` if it was not held."""

		return self.active_notes.pop(pitch, None) is not None

	def drain_held (self) -> typing.List[int]:

		"""Release every held pitch and return them in the order they were pressed."""

		held = list(self.active_notes)
		self.active_notes.clear()

		return held
