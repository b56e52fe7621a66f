"""Error taxonomy for the image pipeline.

Callers distinguish InvalidWatermarkSpec (show the validation message)
from ProcessingFailure (show a generic retry-later message).
"""

from __future__ import annotations


class ProcessingError(Exception):
    """Base class for every error the pipeline surfaces."""


class InvalidImage(ProcessingError):
    """Source could not be decoded or reports zero width/height."""


class InvalidWatermarkSpec(ProcessingError):
    """Caller-supplied watermark parameters are out of range."""


class ProcessingFailure(ProcessingError):
    """Unexpected failure while resizing, compositing or encoding."""


class ProcessingTimeout(ProcessingFailure):
    """Processing did not finish within the configured timeout."""
