"""
PaletteCam error taxonomy.

Fatal start-up errors, per-cycle recoverable errors, caller misuse and
degenerate input each get their own branch so callers can decide whether
to abort, skip a frame, or reject a request.
"""


class PaletteCamError(Exception):
    """Base class for all pipeline errors."""
    pass


class GpuUnavailableError(PaletteCamError):
    """No compatible graphics backend or device acquisition failed."""
    pass


class FrameSourceError(PaletteCamError):
    """Frame source could not be opened."""
    pass


class RecoverableFrameError(PaletteCamError):
    """Per-cycle problem; the scheduler skips the cycle and retries next tick."""
    pass


class EmptyFrameError(RecoverableFrameError):
    """Frame has zero width or height."""
    pass


class FrameSizeError(RecoverableFrameError):
    """Pixel buffer length does not match the reported dimensions."""
    pass


class ExtractionInFlightError(PaletteCamError):
    """Palette extraction was triggered while a previous run is still active."""
    pass


class EmptyColorSetError(PaletteCamError):
    """Palette extraction needs at least one observed color."""
    pass
