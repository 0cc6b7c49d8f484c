"""The stateful link between the sequencer and one MIDI destination.

:class:`OutputChannel` owns the transport capability and the active
destination, and is the only thing that ever sends bytes.  Its job is to make
sure no note is left hanging: every note-on gets a note-off after a fixed
sustain, and switching destination, stopping, or closing silences the device
that is being left behind with an all-notes-off sweep.

Every public method takes the channel's lock, so the sequencer tick, a
pending note-off, and a user switching destination never interleave.
"""

import itertools
import logging
import threading
import typing

import mido

import noteloop.constants.midi
import noteloop.constants.timing
import noteloop.destinations
import noteloop.errors
import noteloop.event_emitter
import noteloop.scheduler
import noteloop.transport


logger = logging.getLogger(__name__)

NO_DESTINATION_LABEL = "No Output Selected"

STATUS_CLOSED = "closed"
STATUS_DEVICE_UNAVAILABLE = "device_unavailable"
STATUS_NO_DESTINATION = "no_destination"
STATUS_READY = "ready"


class OutputChannel:

	"""
	Sends sustained notes and all-notes-off sweeps to the selected destination.

	The transport capability is acquired by :meth:`open` and released by
	:meth:`close`; use the channel as a context manager to guarantee release.

	Overlapping notes of the same pitch are voice-tracked per destination: a
	delayed note-off is only transmitted when it releases the last sounding
	voice of that pitch, so an older note's off never cuts a newer one short.
	"""

	def __init__ (
		self,
		transport: noteloop.transport.Transport,
		scheduler: noteloop.scheduler.Scheduler,
		channel: int = noteloop.constants.midi.DEFAULT_CHANNEL,
		velocity: int = noteloop.constants.midi.DEFAULT_VELOCITY,
		sustain: float = noteloop.constants.timing.NOTE_SUSTAIN
	) -> None:

		"""
		Parameters:
			transport: Delivers raw 3-byte messages.
			scheduler: Arms the delayed note-offs.
			channel: MIDI channel (0-15) for notes.
			velocity: Note-on velocity.
			sustain: Seconds between a note-on and its note-off.
		"""

		self._transport = transport
		self._scheduler = scheduler
		self.channel = channel
		self.velocity = velocity
		self.sustain = sustain

		self._lock = threading.RLock()
		self._capability: typing.Any = None
		self._open_failed = False
		self._destination: typing.Optional[noteloop.destinations.Destination] = None
		self._label = NO_DESTINATION_LABEL
		self._warned_no_destination = False

		self._voices: typing.Dict[typing.Tuple[str, int], typing.Set[int]] = {}
		self._voice_counter = itertools.count()

		self.send_failures = 0
		self.events = noteloop.event_emitter.EventEmitter()

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	def open (self) -> bool:

		"""
		Acquire the transport capability. Returns ``True`` once it is held.

		A :class:`~noteloop.errors.DeviceUnavailable` failure is logged and
		reflected in :attr:`status` rather than raised.
		"""

		with self._lock:

			if self._capability is not None:
				return True

			try:
				self._capability = self._transport.open()
			except noteloop.errors.DeviceUnavailable as e:
				self._open_failed = True
				logger.error(f"Output unavailable: {e}")
				return False

			self._open_failed = False
			logger.info("Output channel opened")
			return True

	def close (self) -> None:

		"""
		Silence the active destination and release the capability.

		The release happens even if the all-notes-off sweep fails.
		"""

		with self._lock:

			capability = self._capability

			if capability is None:
				return

			try:
				self.all_notes_off()
			except Exception:
				logger.exception("All notes off during close failed")
			finally:
				self._capability = None
				self._voices = {}

				try:
					self._transport.close(capability)
				except Exception:
					logger.exception("Failed to release the output capability")

		logger.info("Output channel closed")

	def __enter__ (self) -> "OutputChannel":

		self.open()
		return self

	def __exit__ (self, *exc_info: typing.Any) -> None:

		self.close()

	# ------------------------------------------------------------------
	# State
	# ------------------------------------------------------------------

	@property
	def destination (self) -> typing.Optional[noteloop.destinations.Destination]:

		"""The active destination, or ``None``."""

		with self._lock:
			return self._destination

	@property
	def destination_label (self) -> str:

		"""Human-readable name of the active destination."""

		with self._lock:
			return self._label

	@property
	def status (self) -> str:

		"""One of ``"closed"``, ``"device_unavailable"``, ``"no_destination"``, ``"ready"``."""

		with self._lock:

			if self._capability is None:
				return STATUS_DEVICE_UNAVAILABLE if self._open_failed else STATUS_CLOSED

			if self._destination is None:
				return STATUS_NO_DESTINATION

			return STATUS_READY

	def sounding_pitches (self) -> typing.List[typing.Tuple[str, int]]:

		"""(destination key, pitch) pairs whose note-off has not fired yet."""

		with self._lock:
			return sorted(self._voices)

	# ------------------------------------------------------------------
	# Commands
	# ------------------------------------------------------------------

	def select_destination (self, destination: noteloop.destinations.Destination) -> bool:

		"""
		Make ``destination`` the target of future notes.

		If a different destination was active it receives an all-notes-off
		sweep before the swap.  Re-selecting the active destination only
		refreshes its label.

		Returns:
			``True`` if the active destination changed.
		"""

		with self._lock:

			previous = self._destination

			if previous is not None and previous.key == destination.key:
				self._destination = destination
				self._label = destination.display_name
				changed = False

			else:
				if previous is not None:
					logger.info(f"Output changing - sending All Notes Off to previous output: {previous.display_name}")
					self._all_notes_off_to(previous)

				self._destination = destination
				self._label = destination.display_name
				self._warned_no_destination = False
				changed = True

		if changed:
			logger.info(f"Selected MIDI output: {destination.display_name} (key: {destination.key})")

		self.events.emit("destination", destination.display_name)

		return changed

	def clear_destination (self, label: str = NO_DESTINATION_LABEL) -> None:

		"""Silence and deselect the active destination, if any."""

		with self._lock:

			previous = self._destination

			if previous is not None:
				self._all_notes_off_to(previous)

			self._destination = None
			self._label = label

		if previous is not None:
			logger.info(f"Deselected MIDI output: {previous.display_name}")

		self.events.emit("destination", label)

	def send_note (self, pitch: int) -> bool:

		"""
		Send a note-on now and arm its note-off after the sustain delay.

		The note-off is addressed to the destination active *now*, even if the
		selection changes before it fires.  With no destination or no open
		capability the note is skipped and logged.

		Returns:
			``True`` if the note-on was transmitted.
		"""

		if not noteloop.constants.midi.MIN_NOTE <= pitch <= noteloop.constants.midi.MAX_NOTE:
			raise ValueError(f"Pitch {pitch} outside MIDI range 0-127")

		with self._lock:

			capability = self._capability

			try:
				destination = self._require_destination()
			except noteloop.errors.NoDestinationSelected as e:
				if not self._warned_no_destination:
					logger.warning(f"{e}. Notes will not be sent.")
					self._warned_no_destination = True
				else:
					logger.debug(f"{e} - note {pitch} skipped")
				return False

			if capability is None:
				logger.warning(f"Output channel is not open - note {pitch} skipped")
				return False

			token = next(self._voice_counter)
			self._voices.setdefault((destination.key, pitch), set()).add(token)

			note_on = mido.Message('note_on', channel=self.channel, note=pitch, velocity=self.velocity)
			sent = self._send(capability, destination, note_on)

			self._scheduler.call_later(self.sustain, self._release, destination, pitch, token)

		return sent

	def all_notes_off (self) -> None:

		"""
		Send CC 123 (All Notes Off) on channels 0-15 to the active destination.

		Does nothing without an active destination or open capability.  Safe
		to repeat.
		"""

		with self._lock:

			destination = self._destination

			if destination is None:
				logger.debug("No MIDI destination selected - all notes off skipped")
				return

			self._all_notes_off_to(destination)

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------

	def _require_destination (self) -> noteloop.destinations.Destination:

		if self._destination is None:
			raise noteloop.errors.NoDestinationSelected("No MIDI destination selected")

		return self._destination

	def _all_notes_off_to (self, destination: noteloop.destinations.Destination) -> None:

		"""Sweep every channel of ``destination``. Caller holds the lock."""

		capability = self._capability

		if capability is None:
			logger.debug(f"Output channel is not open - all notes off to {destination.display_name} skipped")
			return

		logger.info(f"Sending All Notes Off to {destination.display_name}")

		for channel in range(noteloop.constants.midi.CHANNEL_COUNT):
			message = mido.Message('control_change', channel=channel, control=noteloop.constants.midi.ALL_NOTES_OFF, value=0)
			self._send(capability, destination, message)

		for key in [key for key in self._voices if key[0] == destination.key]:
			del self._voices[key]

	def _release (self, destination: noteloop.destinations.Destination, pitch: int, token: int) -> None:

		"""Delayed note-off for one voice."""

		with self._lock:

			key = (destination.key, pitch)
			voices = self._voices.get(key)

			if voices is not None:
				voices.discard(token)

				if voices:
					logger.debug(f"Note {pitch} still sounding on {destination.display_name} - note off deferred")
					return

				del self._voices[key]

			capability = self._capability

			if capability is None:
				logger.warning(f"Output channel closed - note off for {pitch} dropped")
				return

			note_off = mido.Message('note_off', channel=self.channel, note=pitch, velocity=noteloop.constants.midi.NOTE_OFF_VELOCITY)
			self._send(capability, destination, note_off)

	def _send (self, capability: typing.Any, destination: noteloop.destinations.Destination, message: mido.Message) -> bool:

		"""Hand one message to the transport. Failures are counted and logged."""

		try:
			self._transport.send(capability, destination.handle, message.bytes())

		except noteloop.errors.SendFailure as e:
			self.send_failures += 1
			logger.error(f"Error sending {message.type} to {destination.display_name}: {e}")
			return False

		except Exception:
			self.send_failures += 1
			logger.exception(f"MIDI send to {destination.display_name} failed (device may be disconnected)")
			return False

		logger.debug(f"Sent {message} to {destination.display_name}")
		return True
