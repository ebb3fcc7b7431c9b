"""Error taxonomy for the fingerprinting engine."""


class DupectlError(Exception):
    """Base class for all engine errors."""


class SourceNotFound(DupectlError):
    """A scan root does not exist. Fatal, raised before any work starts."""

    def __init__(self, path):
        super().__init__(f"Path not found: {path}")
        self.path = path


class Unreadable(DupectlError):
    """A file or archive entry could not be opened or read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class Truncated(DupectlError):
    """A stream ended before (or ran past) its declared size."""

    def __init__(self, path: str, expected: int, actual: int):
        super().__init__(f"{path}: expected {expected} bytes, read {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class CacheUnavailable(DupectlError):
    """The fingerprint cache could not be opened."""


class Cancelled(DupectlError):
    """Cooperative stop requested. Not a failure."""


class UnknownAlgorithm(DupectlError, ValueError):
    """Requested digest algorithm is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown digest algorithm: {name}")
        self.name = name
