"""
noteloop - a small real-time generative note sequencer for MIDI devices.

Once per beat, noteloop picks a random note from a scale and plays it on a
MIDI output for a short, fixed sustain.  The interesting part is keeping the
device consistent: stopping, changing tempo, switching outputs or shutting
down never leaves a note hanging.

- **Scales.** Major, natural minor, major and minor pentatonic, rooted on C
  in octaves 2-6.
- **Tempo.** 60-240 BPM, changeable while playing without a doubled or
  dropped beat.
- **Stuck-note safety.** Every note-on gets its note-off; stop, output
  changes and shutdown send All Notes Off (CC 123) on all 16 channels.
- **Observable.** Tempo, running state, last played pitch and output label
  are published through :class:`~noteloop.event_emitter.EventEmitter`
  events for any presentation layer.
- **Deterministic testing.** All timing goes through a scheduler, so a
  :class:`~noteloop.scheduler.ManualScheduler` can replay seconds of playback
  instantly.

Minimal example:

    ```python
    import noteloop

    session = noteloop.Session(noteloop.Settings(bpm=100, scale="natural_minor", base_octave=3))
    session.play()
    ```

Package-level exports: ``Session``, ``Settings``, ``ScaleType``, ``load_settings``.
"""

import noteloop.config
import noteloop.scales
import noteloop.session


Session = noteloop.session.Session
Settings = noteloop.config.Settings
ScaleType = noteloop.scales.ScaleType
load_settings = noteloop.config.load_settings
