"""Random pitch selection from the current scale.

The generator keeps no state of its own apart from its random source.  The
root and scale are read from a :class:`GeneratorConfig` on every call, so a
change to the octave or scale takes effect on the very next tick.
"""

import dataclasses
import logging
import random
import typing

import noteloop.constants.midi
import noteloop.constants.timing
import noteloop.scales


logger = logging.getLogger(__name__)


def clamp_pitch (pitch: int) -> int:

	"""Clamp a note number into the MIDI range 0-127."""

	return max(noteloop.constants.midi.MIN_NOTE, min(pitch, noteloop.constants.midi.MAX_NOTE))


def clamp_octave (octave: int) -> int:

	"""Clamp an octave number into the supported 2-6 range."""

	return max(noteloop.constants.timing.MIN_OCTAVE, min(int(octave), noteloop.constants.timing.MAX_OCTAVE))


def root_pitch_for_octave (octave: int) -> int:

	"""Return the C of the given octave, where octave 4 is Middle C (60)."""

	return noteloop.constants.midi.MIDDLE_C + (octave - noteloop.constants.midi.MIDDLE_C_OCTAVE) * noteloop.constants.midi.SEMITONES_PER_OCTAVE


@dataclasses.dataclass
class GeneratorConfig:

	"""
	The parameters the note generator reads on every tick.

	Use the setters rather than assigning fields directly - they clamp the
	octave and parse scale names.
	"""

	scale_type: noteloop.scales.ScaleType = noteloop.scales.ScaleType.MAJOR
	base_octave: int = noteloop.constants.timing.DEFAULT_OCTAVE

	def __post_init__ (self) -> None:

		self.scale_type = noteloop.scales.ScaleType.parse(self.scale_type)
		self.base_octave = clamp_octave(self.base_octave)

	@property
	def root_pitch (self) -> int:

		"""The root note for the current octave, recomputed on every access."""

		return root_pitch_for_octave(self.base_octave)

	def set_base_octave (self, octave: int) -> int:

		"""Set the octave, clamped to 2-6. Returns the stored value."""

		clamped = clamp_octave(octave)

		if clamped != octave:
			logger.warning(f"Octave {octave} out of range - clamped to {clamped}")

		self.base_octave = clamped
		return clamped

	def set_scale_type (self, scale_type: typing.Union[noteloop.scales.ScaleType, str]) -> noteloop.scales.ScaleType:

		"""Set the scale from a member or a name. Raises ``ValueError`` for unknown names."""

		self.scale_type = noteloop.scales.ScaleType.parse(scale_type)
		return self.scale_type


class NoteGenerator:

	"""Picks one pitch per call, uniformly from the configured scale."""

	def __init__ (self, rng: typing.Optional[random.Random] = None) -> None:

		"""
		Parameters:
			rng: Random source. Pass a seeded ``random.Random`` for repeatable
				output; defaults to a fresh unseeded instance.
		"""

		self.rng = rng or random.Random()

	def generate (self, config: GeneratorConfig) -> int:

		"""
		Return a pitch in 0-127 drawn from the config's scale and octave.

		Each call is independent - repeated notes are allowed.  If the scale
		has no intervals the clamped root is returned instead.
		"""

		root = config.root_pitch
		offsets = noteloop.scales.intervals(config.scale_type)

		if not offsets:
			logger.warning(f"Scale {config.scale_type.display_name} has no intervals - falling back to the root note")
			return clamp_pitch(root)

		offset = self.rng.choice(offsets)
		pitch = clamp_pitch(root + offset)

		logger.debug(
			f"Generated note {pitch} (octave {config.base_octave}, scale {config.scale_type.display_name}, "
			f"root {root}, interval {offset})"
		)

		return pitch
