"""WebSocket bridge to browser front ends.

Clients receive every session event as JSON::

	{"type": "status", "status": "your_turn", "text": "Your turn! Play something.", "ai_enabled": true}
	{"type": "highlight_start", "pitch": 62, "source": "ai"}
	{"type": "highlight_stop", "pitch": 62, "source": "ai"}

and send input the same way::

	{"type": "key_down", "key": "a", "repeat": false}
	{"type": "key_up", "key": "a"}
	{"type": "pointer_down", "pitch": 60}
	{"type": "pointer_up", "pitch": 60}
	{"type": "pointer_leave", "pitch": 60}
	{"type": "toggle", "enabled": false}

Input goes through the session's normal handlers, so it is ignored during
the AI turn exactly like terminal or MIDI input.  Malformed messages are
logged and dropped.
"""

import json
import logging
import typing

import websockets
import websockets.asyncio.server
import websockets.exceptions

import jambuddy.display
import jambuddy.state

if typing.TYPE_CHECKING:
	from jambuddy.session import Session


logger = logging.getLogger(__name__)


def handle_message (session: "Session", raw: typing.Union[str, bytes]) -> bool:

	"""
	Apply one client message to *session*.

	Returns:
		``False`` if the message was malformed or unknown.
	"""

	try:
		data = json.loads(raw)
		kind = data["type"]

		if kind == "key_down":
			session.key_down(str(data["key"]), repeat=bool(data.get("repeat", False)))
		elif kind == "key_up":
			session.key_up(str(data["key"]))
		elif kind == "pointer_down":
			session.pointer_down(int(data["pitch"]))
		elif kind == "pointer_up":
			session.pointer_up(int(data["pitch"]))
		elif kind == "pointer_leave":
			session.pointer_leave(int(data["pitch"]))
		elif kind == "toggle":
			session.set_ai_enabled(bool(data.get("enabled", not session.ai_enabled)))
		else:
			logger.warning(f"Unknown client message type: {kind!r}")
			return False

	except (ValueError, KeyError, TypeError) as e:
		logger.warning(f"Ignoring malformed client message: {e}")
		return False

	return True


def status_message (state: jambuddy.state.SessionState) -> str:

	return json.dumps({
		"type": "status",
		"status": state.status.value,
		"text": jambuddy.display.status_text(state),
		"ai_enabled": state.ai_enabled,
		"turn": state.turn.value,
	})


def highlight_message (kind: str, pitch: int, source: str) -> str:

	return json.dumps({"type": kind, "pitch": pitch, "source": source})


class WebUI:

	"""
	WebSocket server that mirrors session events to clients and feeds their input back.
	"""

	def __init__ (self, session: "Session", host: str = "0.0.0.0", ws_port: int = 8765) -> None:

		self._session = session
		self.host = host
		self.ws_port = ws_port
		self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
		self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()

	async def start (self) -> None:

		events = self._session.events
		events.on("status", self._on_status)
		events.on("highlight_start", self._on_highlight_start)
		events.on("highlight_stop", self._on_highlight_stop)

		try:
			self._ws_server = await websockets.asyncio.server.serve(self._handle_client, self.host, self.ws_port)
			logger.info(f"WebSocket input/output on ws://localhost:{self.ws_port}")
		except OSError as e:
			logger.error(f"WebSocket server error: {e}")

	async def stop (self) -> None:

		events = self._session.events
		events.off("status", self._on_status)
		events.off("highlight_start", self._on_highlight_start)
		events.off("highlight_stop", self._on_highlight_stop)

		if self._ws_server is not None:
			self._ws_server.close()
			await self._ws_server.wait_closed()
			self._ws_server = None

	async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

		self._clients.add(websocket)

		try:
			await websocket.send(status_message(self._session.state))

			async for message in websocket:
				handle_message(self._session, message)

		except websockets.exceptions.ConnectionClosed:
			pass

		finally:
			self._clients.discard(websocket)

	def _broadcast (self, message: str) -> None:

		if self._clients:
			websockets.broadcast(self._clients, message)

	def _on_status (self, _: jambuddy.state.Status) -> None:

		self._broadcast(status_message(self._session.state))

	def _on_highlight_start (self, pitch: int, source: str) -> None:

		self._broadcast(highlight_message("highlight_start", pitch, source))

	def _on_highlight_stop (self, pitch: int, source: str) -> None:

		self._broadcast(highlight_message("highlight_stop", pitch, source))
