# -*- coding: utf-8 -*-
"""
Interface definitions for txacmectx.
"""
from zope.interface import Interface


class ITransport(Interface):
    """
    Moves signed envelopes to an ACME server and brings back parsed
    responses.

    A problem document from the server is not a transport failure: it comes
    back as a `~txacmectx.messages.TransportResult` with ``error`` set, and
    with the ``nonce`` the server delivered alongside it.  Network failures,
    timeouts and responses that cannot be parsed fail the ``Deferred`` with
    `~txacmectx.errors.TransportError`.
    """

    def head(url):
        """
        Fetch a fresh nonce, usually from the directory's ``newNonce`` URL.

        :param str url: The URL to request.

        :raises ~txacmectx.errors.MissingNonce: if the response has no
            ``Replay-Nonce``.

        :rtype: ``Deferred[str]``
        """

    def get(url, resource_type):
        """
        Make an unsigned GET request.

        :param str url: The URL to request.
        :param resource_type: A `~josepy.interfaces.JSONDeSerializable` type
            to decode the response body with.

        :rtype: ``Deferred[TransportResult]``
        """

    def post(url, envelope, resource_type):
        """
        POST a signed envelope.

        :param str url: The URL to request; the same URL the envelope is
            bound to.
        :param dict envelope: The flattened JWS, as produced by
            `~txacmectx.jws.sign_envelope`.
        :param resource_type: The type to decode the response body with.

        :rtype: ``Deferred[TransportResult]``
        """


__all__ = ['ITransport']
