"""
Exception types for txacmectx.
"""
import attr


@attr.s(auto_exc=True)
class CryptoError(Exception):
    """
    Signing or key export failed; the key material is invalid or unusable.
    """
    reason = attr.ib()

    def __str__(self):
        return repr(self)


@attr.s(auto_exc=True)
class ProtocolError(Exception):
    """
    The ACME server rejected a request with a problem document.

    :ivar ~txacmectx.messages.AcmeError error: The problem document.
    :ivar str location: The URL the request was made to.
    """
    error = attr.ib()
    location = attr.ib(default=None)

    @property
    def typ(self):
        return self.error.typ

    @property
    def detail(self):
        return self.error.detail

    @property
    def subproblems(self):
        return self.error.subproblems

    def __str__(self):
        return repr(self)


@attr.s(auto_exc=True)
class TransportError(Exception):
    """
    The transport failed to deliver a usable response: a network failure,
    timeout or a response we could not make sense of.

    :ivar int code: The HTTP status, if a response was received.
    :ivar str nonce: The ``Replay-Nonce`` of the unusable response, if it
        had one; it is still good for the next request.
    """
    message = attr.ib()
    code = attr.ib(default=None)
    nonce = attr.ib(default=None)

    def __str__(self):
        return repr(self)


class MissingNonce(TransportError):
    """
    No anti-replay nonce is available for the next signed request.
    """


@attr.s(auto_exc=True)
class PollingTimeout(Exception):
    """
    A resource did not reach a terminal status in time.
    """
    resource = attr.ib()

    def __str__(self):
        return repr(self)


__all__ = [
    'CryptoError', 'ProtocolError', 'TransportError', 'MissingNonce',
    'PollingTimeout']
