"""Error types raised by the installer and the workspace setup."""


class LedfxError(RuntimeError):
    """Base class for errors reported to the user."""


class ReleaseError(LedfxError):
    """The GitHub release could not be fetched, downloaded or extracted."""


class CatalogError(LedfxError):
    pass


class CloneError(LedfxError):
    def __init__(self, folder: str, message: str, returncode: int | None = None):
        super().__init__(message)
        self.folder = folder
        self.returncode = returncode


class WorkspaceConfigError(LedfxError):
    """An existing workspace file could not be read or parsed."""
