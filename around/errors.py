"""
Error taxonomy for the post pipeline.
Input errors map to a client status, dependency errors to a generic server failure.
"""


class AroundError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, detail: str, status_code: int = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class InputError(AroundError):
    """Malformed or missing request fields; no store is touched"""

    status_code = 400


class AuthError(AroundError):
    status_code = 401


class ConflictError(AroundError):
    status_code = 409


class DependencyError(AroundError):
    """A backing store failed; callers only see a generic message"""

    status_code = 500


class UploadError(DependencyError):
    pass


class ColumnStoreError(DependencyError):
    pass


class SearchIndexError(DependencyError):
    pass
