"""
errors.py — Error kinds shared by the link store, the HTTP API and the client.

NotFound / Expired / InvalidInput are ordinary outcomes callers branch on.
StorageUnavailable is the only server-side kind worth retrying.
"""


class VanishError(Exception):
    code = "error"
    status = 500
    retryable = False

    def __init__(self, detail: str = None):
        self.detail = detail or self.__class__.__name__
        super().__init__(self.detail)


class InvalidInput(VanishError):
    code = "invalid_input"
    status = 400


class LinkGone(VanishError):
    """The link cannot be redeemed: it never existed, was reaped, or is dead."""


class LinkNotFound(LinkGone):
    code = "not_found_or_burned"
    status = 404


class LinkExpired(LinkGone):
    code = "expired_or_burned"
    status = 410


class StorageUnavailable(VanishError):
    code = "storage_unavailable"
    status = 503
    retryable = True


class Unauthorized(VanishError):
    code = "unauthorized"
    status = 401


class DecryptionFailed(VanishError):
    # Deliberately one kind for bad key, bad password and corrupted data.
    code = "decryption_failed"


class TransportError(VanishError):
    code = "transport_error"
    retryable = True


ERRORS_BY_STATUS = {
    cls.status: cls
    for cls in (InvalidInput, LinkNotFound, LinkExpired, StorageUnavailable, Unauthorized)
}
