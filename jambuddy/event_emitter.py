import asyncio
import logging
import typing


logger = logging.getLogger(__name__)


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named-event fan-out used to notify the presentation layer.

	Session events are emitted from inside timer actions and input handlers,
	which are plain functions, so ``emit()`` never blocks: sync listeners run
	immediately and async listeners are spawned as tasks on the running loop.
	A listener that raises is logged and skipped so a broken display can never
	abort an AI turn.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}
		self._tasks: typing.Set[asyncio.Task] = set()


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)

	def listener_count (self, event_name: str) -> int:

		return len(self._listeners.get(event_name, []))


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call sync listeners now and schedule async listeners on the running loop.

		Async listeners are skipped with a warning when no loop is running.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				self._spawn(event_name, callback(*args, **kwargs))
				continue

			try:
				callback(*args, **kwargs)
			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")


	def _spawn (self, event_name: str, coroutine: typing.Coroutine) -> None:

		try:
			task = asyncio.get_running_loop().create_task(coroutine)
		except RuntimeError:
			coroutine.close()
			logger.warning(f"No running event loop; async listener for {event_name!r} skipped")
			return

		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
