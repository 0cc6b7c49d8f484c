"""Top-level wiring of registry, output channel, sequencer and clock.

A :class:`Session` is the object an application holds.  It owns the output
channel's transport capability for its lifetime, picks a destination the way a
user would expect (keep the current one, else the configured device, else the
first one found), and runs the realtime clock until interrupted.

```python
import noteloop

session = noteloop.Session(noteloop.Settings(bpm=100, scale="minor_pentatonic"))
session.play()   # blocks until Ctrl+C
```
"""

import asyncio
import logging
import random
import signal
import typing

import noteloop.config
import noteloop.destinations
import noteloop.errors
import noteloop.note_generator
import noteloop.output_channel
import noteloop.scheduler
import noteloop.sequencer
import noteloop.transport


logger = logging.getLogger(__name__)

NO_DESTINATIONS_LABEL = "No Destinations Found"


class Session:

	"""
	One running instrument: a sequencer feeding one output channel.
	"""

	def __init__ (
		self,
		settings: typing.Optional[noteloop.config.Settings] = None,
		transport: typing.Optional[noteloop.transport.Transport] = None,
		registry: typing.Optional[noteloop.destinations.DestinationRegistry] = None,
		scheduler: typing.Optional[noteloop.scheduler.Scheduler] = None
	) -> None:

		"""
		Parameters:
			settings: Tempo, scale, octave, preferred device and seed.
			transport: Message transport (``MidoTransport`` by default).
			registry: Destination registry (reads mido output names by default).
			scheduler: Clock.  Defaults to a :class:`~noteloop.scheduler.RealtimeScheduler`;
				pass a :class:`~noteloop.scheduler.ManualScheduler` to drive
				time by hand.
		"""

		self.settings = settings if settings is not None else noteloop.config.Settings()
		self.scheduler = scheduler if scheduler is not None else noteloop.scheduler.RealtimeScheduler(spin_wait=self.settings.spin_wait)
		self.registry = registry if registry is not None else noteloop.destinations.DestinationRegistry()
		self.transport = transport if transport is not None else noteloop.transport.MidoTransport()

		rng = random.Random(self.settings.seed) if self.settings.seed is not None else None

		self.output = noteloop.output_channel.OutputChannel(self.transport, self.scheduler)
		self.sequencer = noteloop.sequencer.Sequencer(
			output = self.output,
			scheduler = self.scheduler,
			generator = noteloop.note_generator.NoteGenerator(rng),
			config = noteloop.note_generator.GeneratorConfig(
				scale_type = self.settings.scale,
				base_octave = self.settings.base_octave
			),
			initial_bpm = self.settings.bpm
		)

		logger.info(
			f"Session initialized with tempo {self.sequencer.tempo:.2f}, "
			f"scale {self.sequencer.config.scale_type.display_name}, octave {self.sequencer.config.base_octave}"
		)

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	def open (self) -> None:

		"""Acquire the output capability and pick an initial destination."""

		if self.output.open():
			self.refresh_destinations()
		else:
			logger.warning("Continuing without MIDI output - notes will be generated but not sent")

	def close (self) -> None:

		"""Stop playback and release the output. Runs every step even if one fails."""

		try:
			self.sequencer.stop()
		finally:
			self.output.close()

	def __enter__ (self) -> "Session":

		self.open()
		return self

	def __exit__ (self, *exc_info: typing.Any) -> None:

		self.close()

	# ------------------------------------------------------------------
	# Destinations
	# ------------------------------------------------------------------

	@property
	def destination_label (self) -> str:

		return self.output.destination_label

	def refresh_destinations (self) -> typing.List[noteloop.destinations.Destination]:

		"""
		Re-enumerate outputs and make sure a sensible one is selected.

		The active destination is kept if it is still present.  Otherwise the
		configured device is chosen, or failing that the first one listed.
		"""

		destinations = self.registry.refresh()
		current = self.output.destination

		if not destinations:
			logger.warning("No available MIDI outputs")
			self.output.clear_destination(NO_DESTINATIONS_LABEL)
			return destinations

		if current is not None and current.key in self.registry:
			self.output.select_destination(self.registry.resolve(current.key))
			return destinations

		preferred = None

		if self.settings.device:
			preferred = self.registry.find(self.settings.device)

			if preferred is None:
				logger.warning(f"MIDI output '{self.settings.device}' not found - using '{destinations[0].display_name}'")

		self.output.select_destination(preferred or destinations[0])

		return destinations

	def select_destination (self, key: str) -> bool:

		"""
		Select a destination by key.

		Returns:
			``False`` if the key is unknown (the current selection is kept),
			otherwise ``True``.
		"""

		try:
			destination = self.registry.resolve(key)
		except noteloop.errors.NotFound as e:
			logger.warning(f"Cannot select output: {e}")
			return False

		self.output.select_destination(destination)
		return True

	# ------------------------------------------------------------------
	# Playback
	# ------------------------------------------------------------------

	def play (self) -> None:

		"""
		Start the sequencer and block until interrupted (Ctrl+C or SIGTERM).
		"""

		try:
			asyncio.run(self.run())

		except KeyboardInterrupt:
			pass

	async def run (self, stop_event: typing.Optional[asyncio.Event] = None) -> None:

		"""
		Open, start, and drive the realtime clock until ``stop_event`` is set
		or a stop signal arrives, then tear everything down.
		"""

		if not isinstance(self.scheduler, noteloop.scheduler.RealtimeScheduler):
			raise TypeError("Session.run() needs a RealtimeScheduler")

		stop_event = stop_event or asyncio.Event()

		with self:
			self.sequencer.start()
			await run_until_stopped(self.scheduler, stop_event)


async def run_until_stopped (scheduler: noteloop.scheduler.RealtimeScheduler, stop_event: asyncio.Event) -> None:

	"""
	Run the scheduler until ``stop_event`` is set or SIGINT/SIGTERM is received.
	"""

	logger.info("Playing. Press Ctrl+C to stop.")

	loop = asyncio.get_running_loop()
	installed: typing.List[signal.Signals] = []

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		try:
			loop.add_signal_handler(sig, _request_stop)
			installed.append(sig)
		except (NotImplementedError, RuntimeError):
			logger.debug(f"Signal handler for {sig.name} not supported here")

	clock_task = asyncio.create_task(scheduler.run())
	stop_task = asyncio.create_task(stop_event.wait())

	try:
		await asyncio.wait([clock_task, stop_task], return_when=asyncio.FIRST_COMPLETED)

	finally:
		scheduler.stop()
		stop_task.cancel()

		for sig in installed:
			loop.remove_signal_handler(sig)

		await clock_task
