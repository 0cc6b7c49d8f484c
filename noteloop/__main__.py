"""Command-line entry point.

Usage::

    python -m noteloop
    python -m noteloop --bpm 90 --scale minor_pentatonic --octave 3
    python -m noteloop --list-devices
"""

import argparse
import logging
import sys
import typing

import noteloop.config
import noteloop.destinations
import noteloop.scales
import noteloop.session


logger = logging.getLogger(__name__)


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	"""Parse command-line options. Anything given here overrides the config file."""

	parser = argparse.ArgumentParser(prog="noteloop", description="Generative note sequencer for MIDI outputs")
	parser.add_argument("--config", default="config.yaml", help="YAML config file (default: config.yaml)")
	parser.add_argument("--bpm", type=float, help="Tempo, 60-240")
	parser.add_argument("--scale", choices=[scale.value for scale in noteloop.scales.ScaleType], help="Scale to draw notes from")
	parser.add_argument("--octave", type=int, help="Base octave, 2-6 (4 = Middle C)")
	parser.add_argument("--device", help="MIDI output to use")
	parser.add_argument("--seed", type=int, help="Random seed for repeatable note choices")
	parser.add_argument("--no-spin-wait", action="store_true", help="Disable the sleep+spin clock strategy")
	parser.add_argument("--list-devices", action="store_true", help="Print available MIDI outputs and exit")
	parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

	return parser.parse_args(argv)


def build_settings (args: argparse.Namespace) -> noteloop.config.Settings:

	"""Merge the config file with command-line overrides."""

	settings = noteloop.config.load_settings(args.config)

	return settings.replace(
		bpm = args.bpm,
		scale = args.scale,
		base_octave = args.octave,
		device = args.device,
		seed = args.seed,
		spin_wait = False if args.no_spin_wait else None
	)


def list_devices () -> int:

	"""Print the available outputs, one per line."""

	destinations = noteloop.destinations.DestinationRegistry().refresh()

	if not destinations:
		print("No MIDI outputs found.")
		return 1

	print("\nAvailable MIDI outputs:\n")
	for i, destination in enumerate(destinations, 1):
		print(f"  {i}. {destination.display_name}")
	print()

	return 0


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the noteloop application.
	"""

	args = parse_args(argv)

	logging.basicConfig(level=getattr(logging, args.log_level))

	if args.list_devices:
		return list_devices()

	try:
		settings = build_settings(args)
	except ValueError as e:
		logger.error(f"Invalid configuration: {e}")
		return 2

	logger.info("noteloop starting...")

	noteloop.session.Session(settings).play()

	return 0


if __name__ == "__main__":
	sys.exit(main())
