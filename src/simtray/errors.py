"""
Error taxonomy shared by the container reader, the save projector and the
tray exporter.

Every error derives from SimTrayError and from the builtin it most closely
resembles, so callers may catch either.
"""


class SimTrayError(Exception):
    """Base class for all SimTray Suite errors."""


class FormatError(SimTrayError, ValueError):
    """Bad magic, unsupported index layout, bad compression or bad record bytes."""


class NotFoundError(SimTrayError, FileNotFoundError):
    """A source file or a required resource/record does not exist."""


class EligibilityError(SimTrayError):
    """A household cannot be exported; carries the precomputed block reason."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ExportIOError(SimTrayError, OSError):
    """Export directory allocation or bundle write failure."""


__all__ = [
    'SimTrayError',
    'FormatError',
    'NotFoundError',
    'EligibilityError',
    'ExportIOError',
]
