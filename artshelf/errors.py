class ArtShelfError(Exception):
    pass


class ConfigError(ArtShelfError):
    pass


class RepositoryError(ArtShelfError):
    """Raised when the asset store rejects a read or write."""


class ScanInProgressError(ArtShelfError):
    pass
