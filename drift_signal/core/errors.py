"""Exception types raised inside the drift signal engine."""


class DriftSignalError(Exception):
    """Base class for engine errors."""


class SeriesAlignmentError(DriftSignalError, ValueError):
    """Two daily series that must be joined do not share start day and length."""

    def __init__(self, message: str, left_start=None, right_start=None, left_len: int = 0, right_len: int = 0):
        super().__init__(message)
        self.left_start = left_start
        self.right_start = right_start
        self.left_len = left_len
        self.right_len = right_len
