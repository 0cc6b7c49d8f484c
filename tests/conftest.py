import typing

import mido
import pytest

import noteloop.destinations
import noteloop.errors
import noteloop.output_channel
import noteloop.scheduler


class FakeMidiOut:

	"""MIDI output stub that records every message it is sent."""

	def __init__ (self, name: str) -> None:

		self.name = name
		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		self.sent.append(message)


	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


# Module-level registry so tests can inspect the ports that were opened.
opened_ports: typing.Dict[str, FakeMidiOut] = {}
output_names: typing.List[str] = ["Dummy MIDI", "Other MIDI"]


def _fake_get_output_names () -> typing.List[str]:

	"""Return the current fake output names."""

	return list(output_names)


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a recording fake output, rejecting unknown names like a real backend."""

	if name not in output_names:
		raise IOError(f"Unknown port {name!r}")

	port = FakeMidiOut(name)
	opened_ports[name] = port
	return port


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> typing.Dict[str, FakeMidiOut]:

	"""Patch mido to use recording fake outputs. Returns the opened-port registry."""

	opened_ports.clear()
	output_names[:] = ["Dummy MIDI", "Other MIDI"]

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)

	return opened_ports


class RecordingTransport:

	"""Transport stub that records (handle, bytes) pairs instead of sending them."""

	def __init__ (self, available: bool = True) -> None:

		self.available = available
		self.sent: typing.List[typing.Tuple[typing.Any, typing.List[int]]] = []
		self.fail_handles: typing.Set[typing.Any] = set()
		self.opened = 0
		self.closed = 0

	def open (self) -> object:

		if not self.available:
			raise noteloop.errors.DeviceUnavailable("no backend")

		self.opened += 1
		return object()

	def send (self, capability: typing.Any, handle: typing.Any, data: typing.Sequence[int]) -> None:

		if handle in self.fail_handles:
			raise noteloop.errors.SendFailure(f"{handle} rejected the message")

		self.sent.append((handle, list(data)))

	def close (self, capability: typing.Any) -> None:

		self.closed += 1

	def sent_to (self, handle: typing.Any) -> typing.List[typing.List[int]]:

		"""Bytes sent to one handle, in order."""

		return [data for sent_handle, data in self.sent if sent_handle == handle]


@pytest.fixture
def scheduler () -> noteloop.scheduler.ManualScheduler:

	return noteloop.scheduler.ManualScheduler()


@pytest.fixture
def transport () -> RecordingTransport:

	return RecordingTransport()


@pytest.fixture
def destination_a () -> noteloop.destinations.Destination:

	return noteloop.destinations.Destination(key="a", display_name="Synth A", handle="port-a")


@pytest.fixture
def destination_b () -> noteloop.destinations.Destination:

	return noteloop.destinations.Destination(key="b", display_name="Synth B", handle="port-b")


@pytest.fixture
def output (transport: RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> typing.Iterator[noteloop.output_channel.OutputChannel]:

	"""An opened output channel with no destination selected."""

	channel = noteloop.output_channel.OutputChannel(transport, scheduler)
	channel.open()
	yield channel
