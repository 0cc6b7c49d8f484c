import logging

import noteloop

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("simple")

session = noteloop.Session(noteloop.Settings(
	bpm=100,
	scale="minor_pentatonic",
	base_octave=3,
	seed=7
))

# Show each pitch as it plays. None means the display window has expired.
session.sequencer.events.on("pitch", lambda pitch: logger.info(f"pitch: {pitch}"))
session.sequencer.events.on("tempo", lambda bpm: logger.info(f"tempo: {bpm:.1f}"))

# Speed up after 8 seconds and move up an octave after 16.
session.scheduler.call_later(8.0, session.sequencer.retune, 160)
session.scheduler.call_later(16.0, session.sequencer.set_base_octave, 4)

if __name__ == "__main__":
	session.play()
