import asyncio
import typing

import mido
import pytest

import conftest
import noteloop.config
import noteloop.destinations
import noteloop.output_channel
import noteloop.scheduler
import noteloop.session


class FakeBackend:

	"""Mutable list of output names standing in for the MIDI backend."""

	def __init__ (self, *names: str) -> None:

		self.names = list(names)

	def __call__ (self) -> typing.List[str]:

		return list(self.names)


def _make_session (backend: FakeBackend, transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler, **settings: typing.Any) -> noteloop.session.Session:

	return noteloop.session.Session(
		settings = noteloop.config.Settings(**settings),
		transport = transport,
		registry = noteloop.destinations.DestinationRegistry(list_names=backend),
		scheduler = scheduler
	)


def test_open_selects_first_destination (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""With no preference the first listed output should be selected."""

	session = _make_session(FakeBackend("Synth", "Drums"), transport, scheduler)
	session.open()

	assert session.destination_label == "Synth"
	assert session.output.status == noteloop.output_channel.STATUS_READY


def test_open_prefers_configured_device (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""A configured device name should win over list order."""

	session = _make_session(FakeBackend("Synth", "Drums"), transport, scheduler, device="Drums")
	session.open()

	assert session.destination_label == "Drums"


def test_missing_configured_device_falls_back (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""An unknown configured device should fall back to the first output."""

	session = _make_session(FakeBackend("Synth"), transport, scheduler, device="Bass")
	session.open()

	assert session.destination_label == "Synth"


def test_no_destinations_found (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""An empty backend should leave nothing selected with a clear label."""

	session = _make_session(FakeBackend(), transport, scheduler)
	session.open()

	assert session.output.destination is None
	assert session.destination_label == noteloop.session.NO_DESTINATIONS_LABEL


def test_refresh_keeps_current_destination (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""A refresh that still lists the active output should not switch or sweep."""

	backend = FakeBackend("Synth", "Drums")
	session = _make_session(backend, transport, scheduler)
	session.open()

	assert session.select_destination("Drums") is True

	backend.names.insert(0, "Bass")
	sent_before = len(transport.sent)
	session.refresh_destinations()

	assert session.destination_label == "Drums"
	assert len(transport.sent) == sent_before


def test_refresh_after_removal_switches_destination (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""If the active output disappears the next available one is chosen."""

	backend = FakeBackend("Synth", "Drums")
	session = _make_session(backend, transport, scheduler)
	session.open()

	backend.names.remove("Synth")
	session.refresh_destinations()

	assert session.destination_label == "Drums"


def test_select_unknown_key_keeps_selection (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Selecting a key that is not listed should fail without changing anything."""

	session = _make_session(FakeBackend("Synth"), transport, scheduler)
	session.open()

	assert session.select_destination("Nope") is False
	assert session.destination_label == "Synth"


def test_session_plays_and_closes_cleanly (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Closing should sweep on stop and again on release, then close the transport once."""

	with _make_session(FakeBackend("Synth"), transport, scheduler, bpm=240, seed=1) as session:
		session.sequencer.start()
		scheduler.advance(1.0)

	note_ons = [data for _, data in transport.sent if data[0] == 0x90]
	sweeps = [data for _, data in transport.sent if data[0] & 0xF0 == 0xB0]

	assert len(note_ons) == 4
	assert len(sweeps) == 32
	assert transport.closed == 1
	assert session.sequencer.running is False


def test_seeded_sessions_play_the_same_notes (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""The same seed should give the same pitch sequence."""

	def run_once () -> typing.List[int]:
		transport = conftest.RecordingTransport()
		clock = noteloop.scheduler.ManualScheduler()
		with _make_session(FakeBackend("Synth"), transport, clock, seed=11) as session:
			session.sequencer.start()
			clock.advance(3.0)
		return [data[1] for _, data in transport.sent if data[0] == 0x90]

	assert run_once() == run_once()


def test_device_unavailable_still_runs (scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""Without a MIDI backend the sequencer should run silently."""

	transport = conftest.RecordingTransport(available=False)

	with _make_session(FakeBackend("Synth"), transport, scheduler) as session:
		session.sequencer.start()
		scheduler.advance(1.0)

		assert session.sequencer.tick_count == 2
		assert session.output.status == noteloop.output_channel.STATUS_DEVICE_UNAVAILABLE

	assert transport.sent == []


def test_run_needs_realtime_scheduler (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""run() drives a real clock and should refuse a manual one."""

	session = _make_session(FakeBackend("Synth"), transport, scheduler)

	with pytest.raises(TypeError):
		asyncio.run(session.run())


@pytest.mark.asyncio
async def test_run_plays_through_mido_until_stopped (patch_midi: typing.Dict[str, conftest.FakeMidiOut]) -> None:

	"""A full session on the realtime clock should send notes to the fake port and silence it on exit."""

	session = noteloop.session.Session(noteloop.config.Settings(bpm=240, seed=3, device="Other MIDI"))
	stop_event = asyncio.Event()

	asyncio.get_running_loop().call_later(0.6, stop_event.set)

	await asyncio.wait_for(session.run(stop_event), timeout=5.0)

	port = patch_midi["Other MIDI"]
	types = [message.type for message in port.sent]

	assert "Dummy MIDI" not in patch_midi
	assert types.count("note_on") >= 1
	assert types.count("control_change") == 32
	assert port.closed
	assert session.sequencer.running is False


def test_injected_collaborators_are_kept_before_refresh (transport: conftest.RecordingTransport, scheduler: noteloop.scheduler.ManualScheduler) -> None:

	"""An empty, not yet refreshed registry is still the one the session uses."""

	registry = noteloop.destinations.DestinationRegistry(list_names=FakeBackend("Synth"))
	session = noteloop.session.Session(transport=transport, registry=registry, scheduler=scheduler)

	assert len(registry) == 0
	assert session.registry is registry
	assert session.transport is transport
	assert session.scheduler is scheduler
