"""Exceptions raised inside the fusion engine.

None of these escape ``fuse``: the orchestrator catches them per document or
per image, logs them and carries on with whatever input is still usable.
"""


class FusionError(Exception):
    """Base class for fusion engine errors."""


class MalformedInputError(FusionError):
    """A document or image record is missing required fields."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class UpstreamFailureError(FusionError):
    """An external collaborator (image classifier) failed for one item."""

    def __init__(self, message: str, item: str | None = None):
        super().__init__(message)
        self.item = item
