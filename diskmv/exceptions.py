"""
Exceptions

Errors raised before any work begins. Everything here ends the run with exit 1.
"""


class DiskmvError(Exception):
    """Base class for diskmv errors"""


class UsageError(DiskmvError):
    """Invalid command line input, reported together with the usage text"""


class InvalidPath(UsageError):
    pass


class InvalidDisk(UsageError):
    pass


class SameDisk(UsageError):
    pass


class InsufficientSpace(UsageError):
    pass
