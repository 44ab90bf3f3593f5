
"""
Jam Buddy - a call-and-response piano for Python.

Play a few notes, stop, and after two seconds of silence a generative model
answers with a continuation of your melody.  While the answer plays the piano
is locked; when it finishes, it is your turn again.

How a turn works:

- **Recording.** Every key press is stored in order.  Timing is not kept:
  each note takes one half-second slot when the request is built.
- **Silence.** Releasing the last held key starts a 2 s countdown; any new
  press cancels it.  Only one countdown ever exists.
- **Request.** The recorded notes become a step-grid sequence and are sent to
  the model with a response length (50 steps) and temperature (1.1).
- **Playback.** The answer's steps become millisecond offsets (125 ms per
  step).  Each note is played and its key lit; out-of-range pitches snap to
  the nearest key.  500 ms after the last note ends, the piano unlocks.
- **Failure.** If the model fails, the turn is abandoned and the piano
  unlocks at once.

The AI can be switched off at any time; a reply already playing is allowed
to finish.

Minimal example:

    ```python
    import jambuddy

    session = jambuddy.Session(model=jambuddy.MarkovModel(seed=1))
    session.display()
    session.hotkeys()
    session.play()
    ```

Package-level exports: ``Session``, ``MarkovModel``, ``GeneratedSequence``,
``GeneratedNote``, ``TurnState``, ``Status``.
"""

import jambuddy.bridge
import jambuddy.models
import jambuddy.session
import jambuddy.state


Session = jambuddy.session.Session
MarkovModel = jambuddy.models.MarkovModel
GeneratedSequence = jambuddy.bridge.GeneratedSequence
GeneratedNote = jambuddy.bridge.GeneratedNote
TurnState = jambuddy.state.TurnState
Status = jambuddy.state.Status
