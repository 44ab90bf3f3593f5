import logging
import typing

import mido


logger = logging.getLogger(__name__)


def _prompt_for_port (names: typing.List[str], kind: str) -> str:

	"""Ask the user on the console to pick one of several ports."""

	print(f"\nAvailable MIDI {kind} devices:\n")
	for i, name in enumerate(names, 1):
		print(f"  {i}. {name}")
	print()

	while True:
		try:
			choice = int(input(f"Select a device (1-{len(names)}): "))
			if 1 <= choice <= len(names):
				break
		except (ValueError, EOFError):
			pass
		print(f"Enter a number between 1 and {len(names)}.")

	selected = names[choice - 1]
	print(f"\nTip: To skip this prompt, set midi.{kind}_device: \"{selected}\" in config.yaml\n")

	return selected


def select_output_device (device_name: typing.Optional[str] = None, prompt: bool = True) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output port for the synth.

	If *device_name* is given, that port is opened or the call fails.  Otherwise
	the only available port is used, or the user is asked to choose when there
	are several (the first is taken when *prompt* is False).

	Returns:
		``(device_name, port)`` or ``(None, None)`` when nothing could be opened.
		Failures are logged, never raised - a session without MIDI output is
		still playable through the presentation layer.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		if not outputs:
			logger.error("No MIDI output devices found.")
			return None, None

		if device_name is not None:
			if device_name not in outputs:
				logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
				return None, None
			selected = device_name

		elif len(outputs) == 1 or not prompt:
			selected = outputs[0]

		else:
			selected = _prompt_for_port(outputs, "output")

		port = mido.open_output(selected)
		logger.info(f"Opened MIDI output: {selected}")

		return selected, port

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None


def select_input_device (device_name: typing.Optional[str] = None, callback: typing.Optional[typing.Callable] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Open a MIDI keyboard as an additional source of human notes.

	Input is optional: with no *device_name* nothing is opened.  When the named
	port is missing the first available input is used instead, with a warning.

	Returns:
		``(device_name, port)`` or ``(None, None)``.
	"""

	if device_name is None:
		return None, None

	try:
		inputs = mido.get_input_names()
		logger.info(f"Available MIDI inputs: {inputs}")

		target = device_name

		if target not in inputs:
			logger.warning(f"MIDI input device '{target}' not found.")
			if not inputs:
				return None, None
			target = inputs[0]
			logger.warning(f"Fallback to: {target}")

		port = mido.open_input(target, callback=callback)
		logger.info(f"Opened MIDI input: {target}")

		return target, port

	except Exception as e:
		logger.error(f"Failed to open MIDI input: {e}")
		return None, None
