import random
import typing


StateType = typing.TypeVar("StateType")


def choose_weighted (options: typing.Sequence[typing.Tuple[StateType, float]], rng: random.Random) -> StateType:

	"""
	Choose one item from a list of weighted options.
	"""

	if not options:
		raise ValueError("Options cannot be empty")

	total_weight = 0.0

	for _, weight in options:
		if weight <= 0:
			raise ValueError("Weights must be positive")
		total_weight += weight

	roll = rng.uniform(0, total_weight)
	accum = 0.0

	for option, weight in options:
		accum += weight
		if roll <= accum:
			return option

	return options[-1][0]


def apply_temperature (options: typing.Sequence[typing.Tuple[StateType, float]], temperature: float) -> typing.List[typing.Tuple[StateType, float]]:

	"""
	Sharpen (< 1) or flatten (> 1) a weighted distribution.

	Each weight is raised to ``1 / temperature``; a temperature of 1 leaves the
	weights unchanged.
	"""

	if temperature <= 0:
		raise ValueError("Temperature must be positive")

	return [(option, weight ** (1.0 / temperature)) for option, weight in options]


class MarkovChain (typing.Generic[StateType]):

	"""
	A first-order weighted Markov chain over arbitrary states.
	"""

	def __init__ (
		self,
		transitions: typing.Dict[StateType, typing.List[typing.Tuple[StateType, float]]],
		initial_state: typing.Optional[StateType] = None,
		rng: typing.Optional[random.Random] = None
	) -> None:

		if not transitions:
			raise ValueError("Transitions cannot be empty")

		self.transitions = transitions
		self.rng = rng or random.Random()

		if initial_state is None:
			initial_state = next(iter(transitions))

		if initial_state not in transitions:
			raise ValueError("Initial state must exist in transitions")

		self.state = initial_state

	@classmethod
	def learn (
		cls,
		sequence: typing.Sequence[StateType],
		rng: typing.Optional[random.Random] = None,
		temperature: float = 1.0,
		smoothing: typing.Optional[typing.Callable[[StateType], typing.List[typing.Tuple[StateType, float]]]] = None
	) -> "MarkovChain[StateType]":

		"""
		Build a chain from the transitions observed in *sequence*.

		Parameters:
			sequence: Observed states in order; must not be empty.
			rng: Random source.
			temperature: Applied to every state's outgoing weights.
			smoothing: Optional function returning extra ``(state, weight)``
				options for a state, so the chain can leave what it has seen.
				States it introduces become part of the chain, so it must only
				ever reach a finite set of states.

		The chain starts on the last observed state.
		"""

		if not sequence:
			raise ValueError("Cannot learn from an empty sequence")

		counts: typing.Dict[StateType, typing.Dict[StateType, float]] = {}

		for current, following in zip(sequence, sequence[1:]):
			row = counts.setdefault(current, {})
			row[following] = row.get(following, 0.0) + 1.0

		pending = list(dict.fromkeys(sequence))
		seen: typing.Set[StateType] = set()

		while pending:
			state = pending.pop()
			if state in seen:
				continue
			seen.add(state)
			row = counts.setdefault(state, {})
			if smoothing is not None:
				for option, weight in smoothing(state):
					row[option] = row.get(option, 0.0) + weight
					if option not in seen:
						pending.append(option)

		transitions = {
			state: apply_temperature(sorted(row.items(), key=lambda item: repr(item[0])), temperature)
			for state, row in counts.items()
		}

		return cls(transitions=transitions, initial_state=sequence[-1], rng=rng)


	def step (self) -> StateType:

		"""
		Advance to the next state and return it.
		"""

		options = self.transitions.get(self.state, [])

		if not options:
			return self.state

		self.state = choose_weighted(options, self.rng)

		return self.state


	def get_state (self) -> StateType:

		"""
		Return the current state.
		"""

		return self.state
