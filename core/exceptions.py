# core/exceptions.py

"""
Exception hierarchy for the media triage engine.
"""


class MediaTriageError(Exception):
    """Base exception for all media triage errors."""
    pass


class DecodeError(MediaTriageError):
    """Raised when a pixel source cannot decode or access image data."""
    pass


class ConfigurationError(MediaTriageError):
    """Raised when configuration values are invalid."""
    pass


class UnknownRecordError(MediaTriageError, KeyError):
    """Raised when a session operation references an unknown record or group."""
    pass
