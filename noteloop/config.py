"""User settings and the YAML file they can be loaded from.

Example ``config.yaml``::

	sequencer:
	  bpm: 100
	  scale: minor_pentatonic
	  base_octave: 3
	  seed: 7
	  spin_wait: true

	midi:
	  device: "IAC Driver Bus 1"

Every section and key is optional.  Numeric values outside their range are
clamped with a warning; an unknown scale name is an error.
"""

import dataclasses
import logging
import os
import typing

import yaml

import noteloop.constants.timing
import noteloop.note_generator
import noteloop.scales
import noteloop.sequencer


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class Settings:

	"""Everything needed to set up a :class:`~noteloop.session.Session`."""

	bpm: float = noteloop.constants.timing.DEFAULT_BPM
	scale: noteloop.scales.ScaleType = noteloop.scales.ScaleType.MAJOR
	base_octave: int = noteloop.constants.timing.DEFAULT_OCTAVE
	device: typing.Optional[str] = None
	seed: typing.Optional[int] = None
	spin_wait: bool = True

	def __post_init__ (self) -> None:

		self.scale = noteloop.scales.ScaleType.parse(self.scale)

		bpm = noteloop.sequencer.clamp_bpm(self.bpm)
		if bpm != self.bpm:
			logger.warning(f"Configured BPM {self.bpm} out of range - clamped to {bpm}")
		self.bpm = bpm

		octave = noteloop.note_generator.clamp_octave(self.base_octave)
		if octave != self.base_octave:
			logger.warning(f"Configured octave {self.base_octave} out of range - clamped to {octave}")
		self.base_octave = octave

	@classmethod
	def from_dict (cls, data: typing.Optional[typing.Dict[str, typing.Any]]) -> "Settings":

		"""Build settings from the parsed YAML structure (``sequencer`` and ``midi`` sections)."""

		data = data or {}
		sequencer = data.get('sequencer') or {}
		midi = data.get('midi') or {}

		conversions = {'bpm': float, 'scale': noteloop.scales.ScaleType.parse, 'base_octave': int, 'seed': int, 'spin_wait': bool}
		kwargs: typing.Dict[str, typing.Any] = {}

		# Null values leave the default in place.
		for key, convert in conversions.items():
			value = sequencer.get(key)
			if value is None:
				continue
			try:
				kwargs[key] = convert(value)
			except (TypeError, ValueError) as e:
				raise ValueError(f"Invalid value for sequencer.{key}: {value!r}") from e

		if midi.get('device'):
			kwargs['device'] = str(midi['device'])

		return cls(**kwargs)

	def replace (self, **changes: typing.Any) -> "Settings":

		"""Return a copy with the given fields overridden (``None`` values are ignored)."""

		return dataclasses.replace(self, **{key: value for key, value in changes.items() if value is not None})


def load_settings (config_path: str = 'config.yaml') -> Settings:

	"""
	Load settings from a YAML file, falling back to defaults if it is missing.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Settings()

	with open(config_path, 'r') as f:
		try:
			data = yaml.safe_load(f)
		except yaml.YAMLError as e:
			raise ValueError(f"Config file {config_path} is not valid YAML: {e}") from e

	if data is not None and not isinstance(data, dict):
		raise ValueError(f"Config file {config_path} must contain a mapping, got {type(data).__name__}")

	logger.info(f"Loaded config from {config_path}")

	return Settings.from_dict(data)
