"""YAML configuration for the ``jambuddy`` command.

Every key is optional::

	midi:
	  output_device: "FluidSynth virtual port"
	  input_device: "USB Keyboard"
	  channel: 0
	ai:
	  enabled: true
	  inactivity_ms: 2000
	  steps: 50
	  temperature: 1.1
	  seed: null
	ui:
	  display: true
	  hotkeys: true
	  web: false
	  ws_port: 8765
"""

import dataclasses
import logging
import os
import typing

import yaml

import jambuddy.constants


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Config:

	"""Settings for one run of the session."""

	output_device: typing.Optional[str] = None
	input_device: typing.Optional[str] = None
	channel: int = jambuddy.constants.DEFAULT_CHANNEL
	ai_enabled: bool = True
	inactivity_ms: float = jambuddy.constants.INACTIVITY_THRESHOLD_MS
	steps: int = jambuddy.constants.RESPONSE_STEPS
	temperature: float = jambuddy.constants.TEMPERATURE
	seed: typing.Optional[int] = None
	display: bool = True
	hotkeys: bool = True
	web: bool = False
	ws_port: int = 8765

	@classmethod
	def from_dict (cls, data: typing.Optional[typing.Dict[str, typing.Any]]) -> "Config":

		"""
		Build a validated config from the parsed YAML mapping.

		Raises ``ValueError`` for values out of range or of the wrong type.
		"""

		data = data or {}

		if not isinstance(data, dict):
			raise ValueError("Config must be a mapping")

		midi = data.get('midi') or {}
		ai = data.get('ai') or {}
		ui = data.get('ui') or {}

		try:
			config = cls(
				output_device = midi.get('output_device'),
				input_device = midi.get('input_device'),
				channel = int(midi.get('channel', jambuddy.constants.DEFAULT_CHANNEL)),
				ai_enabled = bool(ai.get('enabled', True)),
				inactivity_ms = float(ai.get('inactivity_ms', jambuddy.constants.INACTIVITY_THRESHOLD_MS)),
				steps = int(ai.get('steps', jambuddy.constants.RESPONSE_STEPS)),
				temperature = float(ai.get('temperature', jambuddy.constants.TEMPERATURE)),
				seed = None if ai.get('seed') is None else int(ai['seed']),
				display = bool(ui.get('display', True)),
				hotkeys = bool(ui.get('hotkeys', True)),
				web = bool(ui.get('web', False)),
				ws_port = int(ui.get('ws_port', 8765)),
			)
		except (TypeError, AttributeError) as e:
			raise ValueError(f"Invalid config: {e}") from e

		config.validate()

		return config

	def validate (self) -> None:

		if not 0 <= self.channel <= 15:
			raise ValueError("midi.channel must be between 0 and 15")

		if self.inactivity_ms <= 0:
			raise ValueError("ai.inactivity_ms must be positive")

		if self.steps <= 0:
			raise ValueError("ai.steps must be positive")

		if self.temperature <= 0:
			raise ValueError("ai.temperature must be positive")

		if not 0 < self.ws_port < 65536:
			raise ValueError("ui.ws_port must be a valid TCP port")


def load_config (config_path: str = 'config.yaml') -> Config:

	"""
	Load configuration from a YAML file, falling back to defaults if it is missing.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, 'r') as f:
		return Config.from_dict(yaml.safe_load(f))
