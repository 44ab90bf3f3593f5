"""Deferred-action dispatchers.

Every deferred action in a session (the inactivity timer, each playback note,
each highlight clear, the end-of-turn settle) goes through a ``Clock``.  An
action is any zero-argument callable; when it returns a coroutine the clock
makes sure the coroutine runs.

Two implementations share one interface:

- ``AsyncioClock`` uses ``loop.call_later`` on the running event loop and is
  what a live session uses.
- ``VirtualClock`` keeps its own heap of due actions and only moves time when
  ``advance()`` is awaited, so tests can step through a whole AI turn
  deterministically without waiting on the wall clock.

All times are in milliseconds.
"""

import asyncio
import dataclasses
import heapq
import itertools
import logging
import time
import typing


logger = logging.getLogger(__name__)


Action = typing.Callable[[], typing.Any]


@typing.runtime_checkable
class Cancellable (typing.Protocol):

	"""A handle returned by ``Clock.call_later``."""

	def cancel (self) -> None:

		"""Prevent the action from firing.  Safe to call more than once."""

		...


@typing.runtime_checkable
class Clock (typing.Protocol):

	"""Protocol for dispatchers that run actions after a delay."""

	def now (self) -> float:

		"""Return the current time in milliseconds."""

		...

	def call_later (self, delay_ms: float, action: Action) -> Cancellable:

		"""Run *action* once, *delay_ms* milliseconds from now."""

		...


@dataclasses.dataclass (order=True)
class ScheduledAction:

	"""An action waiting in the virtual clock's queue."""

	due_ms: float
	order: int
	action: Action = dataclasses.field(compare=False)
	cancelled: bool = dataclasses.field(compare=False, default=False)

	def cancel (self) -> None:

		self.cancelled = True


class VirtualClock:

	"""
	A clock whose time only moves when ``advance()`` is awaited.

	Actions due at the same time run in the order they were scheduled.
	Coroutines returned by actions are awaited inline before the next action
	runs, so a chain such as "inactivity fires -> model answers -> playback is
	scheduled" completes within a single ``advance()`` call when the model
	answers without real I/O.
	"""

	def __init__ (self, start_ms: float = 0.0) -> None:

		self._now = start_ms
		self._queue: typing.List[ScheduledAction] = []
		self._counter = itertools.count()

	def now (self) -> float:

		return self._now

	def call_later (self, delay_ms: float, action: Action) -> ScheduledAction:

		if delay_ms < 0:
			raise ValueError("Delay cannot be negative")

		scheduled = ScheduledAction(due_ms=self._now + delay_ms, order=next(self._counter), action=action)
		heapq.heappush(self._queue, scheduled)

		return scheduled

	@property
	def pending (self) -> int:

		"""Number of actions still waiting to fire (cancelled ones excluded)."""

		return sum(1 for scheduled in self._queue if not scheduled.cancelled)

	async def advance (self, ms: float) -> None:

		"""Move time forward by *ms*, running every action that becomes due."""

		if ms < 0:
			raise ValueError("Cannot move time backwards")

		await self.advance_to(self._now + ms)

	async def advance_to (self, target_ms: float) -> None:

		"""Move time forward to *target_ms*, running every action that becomes due."""

		while self._queue and self._queue[0].due_ms <= target_ms:

			scheduled = heapq.heappop(self._queue)

			if scheduled.cancelled:
				continue

			self._now = max(self._now, scheduled.due_ms)

			result = scheduled.action()

			if asyncio.iscoroutine(result):
				await result

		self._now = max(self._now, target_ms)


class AsyncioClock:

	"""
	A clock backed by the running asyncio event loop.

	Coroutines returned by actions are spawned as tasks; exceptions they raise
	are logged rather than lost.
	"""

	def __init__ (self, loop: typing.Optional[asyncio.AbstractEventLoop] = None) -> None:

		self._loop = loop
		self._start = time.perf_counter()
		self._tasks: typing.Set[asyncio.Task] = set()

	def now (self) -> float:

		return (time.perf_counter() - self._start) * 1000.0

	def call_later (self, delay_ms: float, action: Action) -> asyncio.TimerHandle:

		if delay_ms < 0:
			raise ValueError("Delay cannot be negative")

		loop = self._loop or asyncio.get_running_loop()

		return loop.call_later(delay_ms / 1000.0, self._run, action)

	def _run (self, action: Action) -> None:

		"""Invoke an action on the loop, spawning a task for coroutine results."""

		result = action()

		if asyncio.iscoroutine(result):
			task = asyncio.ensure_future(result)
			self._tasks.add(task)
			task.add_done_callback(self._on_task_done)

	def _on_task_done (self, task: asyncio.Task) -> None:

		self._tasks.discard(task)

		if task.cancelled():
			return

		exc = task.exception()

		if exc is not None:
			logger.error("Deferred action failed", exc_info=exc)
