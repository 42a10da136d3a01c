"""
Platform error taxonomy

User-facing failures are raised by the engine components and converted
into a log entry plus a transient notification by the platform facade.
"""


class PlatformError(Exception):
    """Base class for all simulation platform errors"""


class ConflictError(PlatformError):
    """An attack is already active or paused"""


class NoTargetsError(PlatformError):
    """No valid attack target could be resolved"""


class InvalidRequestError(PlatformError):
    """A command was called with invalid arguments"""


class UnknownDeviceError(PlatformError):
    """Referenced device does not exist in the registry"""


class DeviceInUseError(PlatformError):
    """Device is referenced by a current or historical attack"""


class PersistenceError(PlatformError):
    """Loading or saving the persisted blob failed"""


class RenderUnavailable(PlatformError):
    """A display element is absent; the update is skipped"""
