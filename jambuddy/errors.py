"""Exceptions raised by the call-and-response pipeline.

None of these are fatal to a session.  ``ModelUnavailable`` leaves the piano
playable with AI replies disabled; ``GenerationError`` aborts the current AI
turn and hands control back to the human.
"""


class JamBuddyError (Exception):

	"""Base class for all Jam Buddy errors."""


class ModelUnavailable (JamBuddyError):

	"""The generative model could not be initialized."""


class GenerationError (JamBuddyError):

	"""The generative model failed to produce a continuation."""
