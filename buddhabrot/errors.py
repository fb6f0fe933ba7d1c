"""Error types raised by the sampling, persistence and configuration layers."""

class BuddhabrotError(Exception):
    """Base class for conditions a caller may recover from."""

class ConfigError(BuddhabrotError, ValueError):
    """The run configuration is unusable; raised before any sampling starts."""

class CorruptPersistedBuffer(BuddhabrotError):
    """A persisted buffer file does not hold ``width*height`` cells."""

    def __init__(self, path: str, expected: int, actual: int):
        super().__init__(f"{path}: expected {expected} bytes, found {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual

    def __reduce__(self):
        return (type(self), (self.path, self.expected, self.actual))

class ShapeMismatchError(AssertionError):
    """Two buffers combined element-wise do not have the same shape."""
