import argparse
import logging

import jambuddy.config
import jambuddy.models
import jambuddy.session


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main () -> None:

	"""
	Main entry point for the jambuddy application.
	"""

	parser = argparse.ArgumentParser(prog="jambuddy", description="Play a melody, pause, and let the AI answer.")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--no-ai", action="store_true", help="start with AI replies switched off")
	args = parser.parse_args()

	config = jambuddy.config.load_config(args.config)

	logger.info("Jam Buddy starting...")

	session = jambuddy.session.Session(
		model = jambuddy.models.MarkovModel(seed=config.seed),
		output_device = config.output_device,
		channel = config.channel,
		ai_enabled = config.ai_enabled and not args.no_ai,
		inactivity_ms = config.inactivity_ms,
		steps = config.steps,
		temperature = config.temperature
	)

	if config.input_device is not None:
		session.midi_input(config.input_device)

	session.display(config.display)
	session.hotkeys(config.hotkeys)

	if config.web:
		session.web_ui(ws_port=config.ws_port)

	session.play()


if __name__ == "__main__":
	main()
