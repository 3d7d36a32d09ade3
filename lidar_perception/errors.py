from enum import Enum


class PipelineError(Exception):
    """
    Base error for the perception pipeline. `code` is a short stable identifier.
    """
    code = "pipeline_error"

    def __init__(self, message: str, context: str = "", code: str = ""):
        super().__init__(message)
        if code:
            self.code = code
        self.context = context


class InsufficientDataError(PipelineError):
    code = "insufficient_data"


class EmptyClusterError(PipelineError, ValueError):
    code = "empty_cluster"


class FrameLoadError(PipelineError):
    code = "frame_load"


class FrameErrorPolicy(str, Enum):
    """What a FrameStream does when a frame cannot be loaded."""
    SKIP = "skip"
    RAISE = "raise"
