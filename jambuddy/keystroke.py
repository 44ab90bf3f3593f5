"""Terminal keys as piano input.

``TerminalKeyReader`` puts stdin into cbreak mode on a daemon thread and posts
every byte it reads to the session's event loop with
``loop.call_soon_threadsafe``, so key handling always runs on the loop like
any other input.  Terminals only report presses; the session turns each
press into a short tap.

Needs :mod:`termios`/:mod:`tty` and an interactive TTY on stdin.  Without
them ``start()`` logs why and returns ``False``; MIDI and WebSocket input
still work.
"""

import asyncio
import logging
import os
import select
import sys
import threading
import typing

try:
	import termios
	import tty
except ImportError:
	termios = None  # type: ignore[assignment]
	tty = None  # type: ignore[assignment]


logger = logging.getLogger(__name__)


def unavailable_reason () -> typing.Optional[str]:

	"""Why single-key terminal input cannot work here, or ``None`` if it can."""

	if termios is None or tty is None:
		return "the 'termios' and 'tty' modules need a POSIX system (Linux or macOS)"

	try:
		if not sys.stdin.isatty():
			return "stdin is not an interactive terminal"
	except (AttributeError, ValueError):
		return "stdin is closed or missing"

	return None


class TerminalKeyReader:

	"""
	Reads single key presses from the terminal and hands them to *on_key*.

	*on_key* is always called on the event loop passed to ``start()``, never on
	the reader thread.
	"""

	def __init__ (self, on_key: typing.Callable[[str], typing.Any]) -> None:

		self._on_key = on_key
		self._loop: typing.Optional[asyncio.AbstractEventLoop] = None
		self._thread: typing.Optional[threading.Thread] = None
		self._running = False

	@property
	def running (self) -> bool:

		return self._running

	def start (self, loop: asyncio.AbstractEventLoop) -> bool:

		"""
		Start reading on a background thread.

		Returns:
			``False`` if terminal input is unavailable (the reason is logged).
		"""

		if self._running:
			return True

		reason = unavailable_reason()

		if reason is not None:
			logger.warning(f"Terminal keys disabled: {reason}")
			return False

		self._loop = loop
		self._running = True
		self._thread = threading.Thread(target=self._read_terminal, name="jambuddy-terminal-keys", daemon=True)
		self._thread.start()

		return True

	def stop (self) -> None:

		"""Ask the thread to exit; the terminal is restored within ~0.1 s."""

		self._running = False

	def _read_terminal (self) -> None:

		fd = sys.stdin.fileno()
		saved = termios.tcgetattr(fd)

		try:
			tty.setcbreak(fd)
			self._pump(fd)

		except Exception:
			logger.exception("Terminal key reader stopped unexpectedly")

		finally:
			termios.tcsetattr(fd, termios.TCSADRAIN, saved)
			self._running = False

	def _pump (self, fd: int) -> None:

		# os.read bypasses Python's stdin buffer, which select cannot see.
		while self._running:

			ready, _, _ = select.select([fd], [], [], 0.1)

			if not ready:
				continue

			data = os.read(fd, 1)

			if not data:
				break

			char = data.decode(errors="ignore")

			if char:
				self._post(char)

	def _post (self, char: str) -> None:

		if self._loop is None:
			return

		try:
			self._loop.call_soon_threadsafe(self._on_key, char)
		except RuntimeError:
			# Loop closed underneath us.
			self._running = False
