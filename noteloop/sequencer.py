import logging
import threading
import typing

import noteloop.constants.timing
import noteloop.event_emitter
import noteloop.note_generator
import noteloop.output_channel
import noteloop.scales
import noteloop.scheduler


logger = logging.getLogger(__name__)


def clamp_bpm (bpm: float) -> float:

	"""Clamp a tempo into the supported 60-240 BPM range."""

	return max(noteloop.constants.timing.MIN_BPM, min(float(bpm), noteloop.constants.timing.MAX_BPM))


class Sequencer:

	"""
	Emits one generated note per beat while running.

	The sequencer has two states, stopped and running.  While running, a
	repeating timer on the scheduler calls the note generator and hands the
	pitch to the output channel once per beat.  Stopping cancels that timer
	and sends an all-notes-off sweep.

	Each periodic schedule carries a generation number.  A tick that arrives
	with an old generation (because it was already being dispatched when
	``stop()`` or ``retune()`` replaced the schedule) is discarded.

	Events emitted on :attr:`events`:

	- ``"running"`` (bool) on start and stop
	- ``"tempo"`` (float) on retune
	- ``"pitch"`` (int or None) when the last played pitch is set or cleared
	- ``"tick"`` (tick index, pitch) after every note
	"""

	def __init__ (
		self,
		output: noteloop.output_channel.OutputChannel,
		scheduler: noteloop.scheduler.Scheduler,
		generator: typing.Optional[noteloop.note_generator.NoteGenerator] = None,
		config: typing.Optional[noteloop.note_generator.GeneratorConfig] = None,
		initial_bpm: float = noteloop.constants.timing.DEFAULT_BPM,
		pitch_display_window: float = noteloop.constants.timing.PITCH_DISPLAY_WINDOW
	) -> None:

		"""
		Parameters:
			output: Where generated notes are sent.
			scheduler: Clock for the periodic tick and the last-pitch clear.
			generator: Pitch source (a fresh unseeded one by default).
			config: Scale and octave, read on every tick.
			initial_bpm: Starting tempo, clamped to 60-240.
			pitch_display_window: Seconds a played pitch stays visible in
				:attr:`last_played_pitch`.
		"""

		self.output = output
		self.scheduler = scheduler
		self.generator = generator if generator is not None else noteloop.note_generator.NoteGenerator()
		self.config = config if config is not None else noteloop.note_generator.GeneratorConfig()
		self.pitch_display_window = pitch_display_window
		self.events = noteloop.event_emitter.EventEmitter()

		self._lock = threading.RLock()
		self._bpm = clamp_bpm(initial_bpm)
		self._running = False

		self._tick_timer: typing.Optional[noteloop.scheduler.Timer] = None
		self._schedule_generation = 0
		self._last_tick_time = 0.0
		self._tick_count = 0

		self._last_played_pitch: typing.Optional[int] = None
		self._pitch_generation = 0

	# ------------------------------------------------------------------
	# Observable state
	# ------------------------------------------------------------------

	@property
	def tempo (self) -> float:

		"""Current tempo in BPM."""

		with self._lock:
			return self._bpm

	@property
	def period (self) -> float:

		"""Seconds between ticks at the current tempo."""

		with self._lock:
			return 60.0 / self._bpm

	@property
	def running (self) -> bool:

		with self._lock:
			return self._running

	@property
	def last_played_pitch (self) -> typing.Optional[int]:

		"""The most recent pitch, or ``None`` once its display window has passed."""

		with self._lock:
			return self._last_played_pitch

	@property
	def tick_count (self) -> int:

		"""Ticks delivered since construction."""

		with self._lock:
			return self._tick_count

	# ------------------------------------------------------------------
	# Transport controls
	# ------------------------------------------------------------------

	def start (self) -> None:

		"""Begin ticking, first tick one period from now. Does nothing if already running."""

		with self._lock:

			if self._running:
				return

			self._running = True
			self._last_tick_time = self.scheduler.now()
			self._arm_tick(self._last_tick_time + 60.0 / self._bpm)

			logger.info(f"Sequencer started at {self._bpm:.2f} BPM (interval {60.0 / self._bpm:.3f}s)")

		self.events.emit("running", True)

	def stop (self) -> None:

		"""
		Stop ticking and silence the output. Does nothing if already stopped.

		Pending note-offs and last-pitch clears are left to complete.
		"""

		with self._lock:

			if not self._running:
				return

			self._running = False
			self._cancel_tick()
			self.output.all_notes_off()

			logger.info("Sequencer stopped")

		self.events.emit("running", False)

	def retune (self, bpm: float) -> float:

		"""
		Change the tempo, clamped to 60-240 BPM. Returns the stored value.

		While running, the periodic schedule is replaced at once: the next
		tick lands one new period after the last tick, or immediately if that
		moment has already passed.  While stopped, the new tempo applies from
		the next :meth:`start`.
		"""

		with self._lock:

			clamped = clamp_bpm(bpm)

			if clamped != bpm:
				logger.warning(f"Tempo {bpm} out of range - clamped to {clamped}")

			self._bpm = clamped

			if self._running:
				self._cancel_tick()
				next_tick = max(self._last_tick_time + 60.0 / clamped, self.scheduler.now())
				self._arm_tick(next_tick)
				logger.info(f"Tempo changed to {clamped:.2f} BPM, schedule replaced")

			else:
				logger.info(f"Tempo changed to {clamped:.2f} BPM. Will be used when started.")

		self.events.emit("tempo", clamped)

		return clamped

	# ------------------------------------------------------------------
	# Generator settings
	# ------------------------------------------------------------------

	def set_scale_type (self, scale_type: typing.Union[noteloop.scales.ScaleType, str]) -> noteloop.scales.ScaleType:

		"""Change the scale used from the next tick on."""

		with self._lock:
			result = self.config.set_scale_type(scale_type)

		logger.info(f"Scale changed to {result.display_name}")

		return result

	def set_base_octave (self, octave: int) -> int:

		"""Change the octave (clamped to 2-6) used from the next tick on."""

		with self._lock:
			result = self.config.set_base_octave(octave)

		logger.info(f"Base octave changed to {result}")

		return result

	# ------------------------------------------------------------------
	# Internals
	# ------------------------------------------------------------------

	def _arm_tick (self, when: float) -> None:

		"""Start a new schedule generation with its first tick at ``when``. Caller holds the lock."""

		self._schedule_generation += 1
		self._tick_timer = self.scheduler.call_at(when, self._on_tick, self._schedule_generation, when)

	def _cancel_tick (self) -> None:

		"""Invalidate the current schedule generation. Caller holds the lock."""

		if self._tick_timer is not None:
			self._tick_timer.cancel()
			self._tick_timer = None

		self._schedule_generation += 1

	def _on_tick (self, generation: int, tick_time: float) -> None:

		"""
		Periodic callback: re-arm, then play one note.

		The next tick is placed one period after this tick's deadline, not
		after the moment the callback ran, so late callbacks do not drift
		the beat grid.
		"""

		with self._lock:

			if not self._running or generation != self._schedule_generation:
				logger.debug(f"Discarding stale tick (generation {generation})")
				return

			self._last_tick_time = tick_time
			next_tick = tick_time + 60.0 / self._bpm
			self._tick_timer = self.scheduler.call_at(next_tick, self._on_tick, generation, next_tick)

			pitch = self.generator.generate(self.config)
			self._tick_count += 1
			tick_index = self._tick_count

			self._record_pitch(pitch)

		self.events.emit("pitch", pitch)
		self.events.emit("tick", tick_index, pitch)

	def _play (self, pitch: int) -> None:

		"""Send a note and show it as the last played pitch for the display window."""

		with self._lock:
			self._record_pitch(pitch)

		self.events.emit("pitch", pitch)

	def _record_pitch (self, pitch: int) -> None:

		"""Send the note and arm the generation-guarded clear. Caller holds the lock."""

		logger.debug(f"Playing note {pitch}")
		self.output.send_note(pitch)

		self._pitch_generation += 1
		self._last_played_pitch = pitch
		self.scheduler.call_later(self.pitch_display_window, self._clear_pitch, self._pitch_generation)

	def _clear_pitch (self, generation: int) -> None:

		"""Clear the last played pitch unless a newer note has replaced it."""

		with self._lock:

			if generation != self._pitch_generation:
				return

			self._last_played_pitch = None

		self.events.emit("pitch", None)
