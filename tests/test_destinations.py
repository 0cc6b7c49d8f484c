import typing

import pytest

import conftest
import noteloop.destinations
import noteloop.errors


def test_refresh_lists_backend_outputs (patch_midi: typing.Dict[str, conftest.FakeMidiOut]) -> None:

	"""refresh() should snapshot the mido output names in order."""

	registry = noteloop.destinations.DestinationRegistry()
	destinations = registry.refresh()

	assert [d.display_name for d in destinations] == ["Dummy MIDI", "Other MIDI"]
	assert [d.key for d in registry.list_destinations()] == ["Dummy MIDI", "Other MIDI"]
	assert len(registry) == 2


def test_list_is_empty_before_refresh () -> None:

	"""Enumeration is caller-driven; nothing is listed until refresh()."""

	registry = noteloop.destinations.DestinationRegistry(list_names=lambda: ["A"])

	assert registry.list_destinations() == []


def test_resolve_and_find () -> None:

	"""Keys resolve to destinations; display names can be searched."""

	registry = noteloop.destinations.DestinationRegistry(list_names=lambda: ["Synth", "Drums"])
	registry.refresh()

	drums = registry.resolve("Drums")

	assert drums.handle == "Drums"
	assert registry.find("Synth") == registry.resolve("Synth")
	assert registry.find("Bass") is None
	assert "Drums" in registry


def test_resolve_unknown_raises_not_found () -> None:

	"""A stale or removed key should raise NotFound carrying the key."""

	names = ["Synth"]
	registry = noteloop.destinations.DestinationRegistry(list_names=lambda: list(names))
	registry.refresh()

	names.clear()
	registry.refresh()

	with pytest.raises(noteloop.errors.NotFound) as excinfo:
		registry.resolve("Synth")

	assert excinfo.value.key == "Synth"


def test_duplicate_names_get_unique_keys () -> None:

	"""Ports sharing a name should still have distinct keys."""

	registry = noteloop.destinations.DestinationRegistry(list_names=lambda: ["USB MIDI", "USB MIDI", "Other"])
	keys = [d.key for d in registry.refresh()]

	assert keys == ["USB MIDI", "USB MIDI#2", "Other"]


def test_backend_failure_yields_empty_snapshot () -> None:

	"""A failing backend should be logged and treated as no destinations."""

	def broken () -> typing.List[str]:
		raise OSError("backend gone")

	registry = noteloop.destinations.DestinationRegistry(list_names=broken)

	assert registry.refresh() == []


def test_destination_equality_ignores_handle () -> None:

	"""Identity is the key and name, not the transport handle."""

	a = noteloop.destinations.Destination(key="k", display_name="Synth", handle=1)
	b = noteloop.destinations.Destination(key="k", display_name="Synth", handle=2)

	assert a == b
