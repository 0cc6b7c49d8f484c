"""Enumeration and lookup of MIDI output destinations.

The registry only reports what the backend can see.  It never decides when to
refresh (the caller does) and never opens ports (the transport does).
"""

import dataclasses
import logging
import threading
import typing

import mido

import noteloop.errors


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class Destination:

	"""
	A selectable output.

	``key`` is the stable identity used for selection and comparison,
	``display_name`` is for people, and ``handle`` is whatever the transport
	needs to address the device (a mido port name).
	"""

	key: str
	display_name: str
	handle: typing.Any = dataclasses.field(compare=False)


def _unique_keys (names: typing.Sequence[str]) -> typing.List[str]:

	"""Suffix repeated names with ``#2``, ``#3``... so every key is unique."""

	seen: typing.Dict[str, int] = {}
	keys: typing.List[str] = []

	for name in names:
		seen[name] = seen.get(name, 0) + 1
		keys.append(name if seen[name] == 1 else f"{name}#{seen[name]}")

	return keys


class DestinationRegistry:

	"""
	Snapshot of the available output destinations.
	"""

	def __init__ (self, list_names: typing.Optional[typing.Callable[[], typing.Sequence[str]]] = None) -> None:

		"""
		Parameters:
			list_names: Returns the backend's output port names.  Defaults to
				``mido.get_output_names``.
		"""

		self._list_names = list_names or mido.get_output_names
		self._destinations: typing.List[Destination] = []
		self._lock = threading.Lock()

	def refresh (self) -> typing.List[Destination]:

		"""
		Re-read the backend and return the new snapshot.

		If the backend cannot be queried the snapshot becomes empty and the
		failure is logged.
		"""

		try:
			names = list(self._list_names())
		except Exception as e:
			logger.error(f"Failed to list MIDI outputs: {e}")
			names = []

		destinations = [
			Destination(key=key, display_name=name, handle=name)
			for key, name in zip(_unique_keys(names), names)
		]

		with self._lock:
			self._destinations = destinations

		logger.info(f"Found {len(destinations)} MIDI destinations: {[d.display_name for d in destinations]}")

		return list(destinations)

	def list_destinations (self) -> typing.List[Destination]:

		"""The destinations found by the last :meth:`refresh`, in backend order."""

		with self._lock:
			return list(self._destinations)

	def resolve (self, key: str) -> Destination:

		"""
		Look up a destination by key.

		Raises:
			NotFound: If no destination in the current snapshot has that key.
		"""

		with self._lock:
			for destination in self._destinations:
				if destination.key == key:
					return destination

		raise noteloop.errors.NotFound(key)

	def find (self, display_name: str) -> typing.Optional[Destination]:

		"""Return the first destination with this display name, if any."""

		with self._lock:
			for destination in self._destinations:
				if destination.display_name == display_name:
					return destination

		return None

	def __contains__ (self, key: object) -> bool:

		with self._lock:
			return any(destination.key == key for destination in self._destinations)

	def __len__ (self) -> int:

		with self._lock:
			return len(self._destinations)
