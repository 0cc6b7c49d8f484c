"""Scale types and their interval sets.

Each scale is an ordered list of semitone offsets from the root, strictly
ascending within one octave and always starting at ``0``.
"""

import enum
import typing


class ScaleType (enum.Enum):

	"""The scales the note generator can draw from."""

	MAJOR = "major"
	NATURAL_MINOR = "natural_minor"
	MAJOR_PENTATONIC = "major_pentatonic"
	MINOR_PENTATONIC = "minor_pentatonic"


	@property
	def display_name (self) -> str:

		"""Human-readable name, e.g. ``"Natural Minor"``."""

		return self.value.replace("_", " ").title()


	@property
	def intervals (self) -> typing.List[int]:

		"""Shortcut for :func:`intervals`."""

		return intervals(self)


	@classmethod
	def parse (cls, value: typing.Union["ScaleType", str]) -> "ScaleType":

		"""Resolve a member, a snake_case name or a display name.

		Matching is case-insensitive and treats spaces, hyphens and
		underscores alike, so ``"Natural Minor"``, ``"natural-minor"`` and
		``"NATURAL_MINOR"`` all give :attr:`NATURAL_MINOR`.

		Raises:
			ValueError: If the name matches no scale.
		"""

		if isinstance(value, cls):
			return value

		normalised = str(value).strip().lower().replace(" ", "_").replace("-", "_")

		for member in cls:
			if member.value == normalised:
				return member

		known = ", ".join(member.value for member in cls)
		raise ValueError(f"Unknown scale {value!r}. Known scales: {known}")


SCALE_INTERVALS: typing.Dict[ScaleType, typing.Tuple[int, ...]] = {
	ScaleType.MAJOR: (0, 2, 4, 5, 7, 9, 11),
	ScaleType.NATURAL_MINOR: (0, 2, 3, 5, 7, 8, 10),
	ScaleType.MAJOR_PENTATONIC: (0, 2, 4, 7, 9),
	ScaleType.MINOR_PENTATONIC: (0, 3, 5, 7, 10),
}


def intervals (scale_type: ScaleType) -> typing.List[int]:

	"""
	Return the semitone offsets for a scale type.

	A fresh list is returned on every call so callers may mutate it freely.
	"""

	return list(SCALE_INTERVALS[scale_type])
