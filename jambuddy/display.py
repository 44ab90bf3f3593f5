"""Live terminal status line for a session.

Shows the session status and a one-line keyboard with lit keys, redrawn on
every status or highlight event::

	Your turn! Play something.  |a w s e D f t g y h u j k o l p ; '|  AI: on

Human-held keys are shown in upper case, keys the AI is playing as ``*``.
Log messages scroll above the status line without disrupting it.

Enable it before ``play()``:

```python
session.display()
session.play()
```
"""

import logging
import sys
import typing

import jambuddy.state

if typing.TYPE_CHECKING:
	from jambuddy.session import Session


STATUS_TEXT: typing.Dict[jambuddy.state.Status, str] = {
	jambuddy.state.Status.LOADING: "Loading AI model...",
	jambuddy.state.Status.READY: "System ready! Play a melody, then wait for the AI to respond.",
	jambuddy.state.Status.LISTENING: "AI is listening and jamming back...",
	jambuddy.state.Status.YOUR_TURN: "Your turn! Play something.",
	jambuddy.state.Status.ERROR: "AI encountered an error. Try again!",
	jambuddy.state.Status.OFF: "AI is OFF. Play freely - no AI replies.",
}


def status_text (state: jambuddy.state.SessionState) -> str:

	"""Return the user-facing text for the current status."""

	if state.status is jambuddy.state.Status.OFF and not state.human_turn:
		return "AI will finish this reply, then stay OFF."

	return STATUS_TEXT[state.status]


class DisplayLogHandler (logging.Handler):

	"""Logging handler that clears and redraws the status line around log output.

	Installed by ``Display.start()`` and removed by ``Display.stop()``.
	"""

	def __init__ (self, display: "Display") -> None:

		super().__init__()
		self._display = display

	def emit (self, record: logging.LogRecord) -> None:

		"""Clear the status line, write the log message, then redraw."""

		try:
			self._display.clear_line()

			msg = self.format(record)
			sys.stderr.write(msg + "\n")
			sys.stderr.flush()

			self._display.draw()

		except Exception:
			self.handleError(record)


class Display:

	"""Status line on stderr that follows a session's events.

	``start()`` subscribes to the session's ``status``, ``highlight_start`` and
	``highlight_stop`` events and swaps the root logger's handlers for a
	``DisplayLogHandler``; ``stop()`` undoes both.
	"""

	def __init__ (self, session: "Session") -> None:

		self._session = session
		self._active: bool = False
		self._handler: typing.Optional[DisplayLogHandler] = None
		self._saved_handlers: typing.List[logging.Handler] = []
		self._last_line: str = ""
		self.lit: typing.Dict[int, str] = {}

	def start (self) -> None:

		"""Install the log handler, subscribe to session events and draw."""

		if self._active:
			return

		self._active = True

		root_logger = logging.getLogger()
		self._saved_handlers = list(root_logger.handlers)
		self._handler = DisplayLogHandler(self)

		if self._saved_handlers and self._saved_handlers[0].formatter:
			self._handler.setFormatter(self._saved_handlers[0].formatter)
		else:
			self._handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))

		root_logger.handlers.clear()
		root_logger.addHandler(self._handler)

		events = self._session.events
		events.on("status", self._on_status)
		events.on("highlight_start", self._on_highlight_start)
		events.on("highlight_stop", self._on_highlight_stop)

		self.update()

	def stop (self) -> None:

		"""Clear the status line, unsubscribe and restore original log handlers."""

		if not self._active:
			return

		self.clear_line()
		self._active = False

		events = self._session.events
		events.off("status", self._on_status)
		events.off("highlight_start", self._on_highlight_start)
		events.off("highlight_stop", self._on_highlight_stop)

		root_logger = logging.getLogger()
		root_logger.handlers.clear()

		for handler in self._saved_handlers:
			root_logger.addHandler(handler)

		self._saved_handlers = []
		self._handler = None

	def _on_status (self, _: jambuddy.state.Status) -> None:

		self.update()

	def _on_highlight_start (self, pitch: int, source: str) -> None:

		self.lit[pitch] = source
		self.update()

	def _on_highlight_stop (self, pitch: int, source: str) -> None:

		if self.lit.get(pitch) == source:
			del self.lit[pitch]

		self.update()

	def update (self) -> None:

		"""Rebuild and redraw the status line."""

		if not self._active:
			return

		self._last_line = self._format_status()
		self.draw()

	def draw (self) -> None:

		if not self._active or not self._last_line:
			return

		sys.stderr.write(f"\r\033[K{self._last_line}")
		sys.stderr.flush()

	def clear_line (self) -> None:

		if not self._active:
			return

		sys.stderr.write("\r\033[K")
		sys.stderr.flush()

	def _format_keys (self) -> str:

		chars: typing.List[str] = []

		for key, pitch in self._session.key_map.items():
			source = self.lit.get(pitch)
			if source == "ai":
				chars.append("*")
			elif source == "human":
				chars.append(key.upper())
			else:
				chars.append(key)

		return "|" + " ".join(chars) + "|"

	def _format_status (self) -> str:

		"""Build the status string from current session state."""

		state = self._session.state

		parts = [
			status_text(state),
			self._format_keys(),
			f"AI: {'on' if state.ai_enabled else 'off'}",
		]

		return "  ".join(parts)
