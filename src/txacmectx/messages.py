"""
ACME resource bodies and the shape of a transport round trip.

This module provides the resource messages the contexts decode, built the
way `acme.messages` builds its own.  Identifiers are reused from
`acme.messages`.

..  seealso:: `acme.messages`
"""
import attr
import josepy as jose
from acme import messages

STATUS_PENDING = u'pending'
STATUS_READY = u'ready'
STATUS_PROCESSING = u'processing'
STATUS_VALID = u'valid'
STATUS_INVALID = u'invalid'
STATUS_REVOKED = u'revoked'
STATUS_DEACTIVATED = u'deactivated'
STATUS_EXPIRED = u'expired'

TERMINAL_STATUSES = frozenset([
    STATUS_VALID,
    STATUS_INVALID,
    STATUS_REVOKED,
    STATUS_DEACTIVATED,
    STATUS_EXPIRED,
    ])


def is_terminal(status):
    """
    Is ``status`` final?

    ``pending``, ``ready`` and ``processing`` may still change without
    further action from us; every other known status is final::

        pending --> processing --+--> valid
                                 |
                                 +--> invalid

    :param str status: A resource status.

    :rtype: bool
    """
    return status in TERMINAL_STATUSES


class AcmeError(jose.JSONObjectWithFields):
    """
    An RFC 7807 problem document, as returned by an ACME server.

    Problems may be compound: one request may fail for several identifiers,
    each reported as a subproblem.
    """
    typ = jose.Field('type', omitempty=True, default=u'about:blank')
    title = jose.Field('title', omitempty=True)
    detail = jose.Field('detail', omitempty=True)
    status = jose.Field('status', omitempty=True)
    identifier = jose.Field(
        'identifier', omitempty=True, decoder=messages.Identifier.from_json)
    subproblems = jose.Field('subproblems', omitempty=True, default=())

    @subproblems.decoder
    def subproblems(value):
        return tuple(AcmeError.from_json(problem) for problem in value)

    @property
    def code(self):
        """
        The error code, without its namespace.

        Current servers use ``urn:ietf:params:acme:error:<code>``, but earlier
        drafts (and some implementations) use ``urn:acme:error:<code>``.
        """
        return self.typ.split(u':')[-1]

    def is_bad_nonce(self):
        return self.code == u'badNonce'


class Challenge(jose.JSONObjectWithFields):
    """
    A challenge resource.
    """
    typ = jose.Field('type')
    url = jose.Field('url')
    status = jose.Field('status', omitempty=True, default=STATUS_PENDING)
    token = jose.Field('token', omitempty=True)
    validated = jose.Field('validated', omitempty=True)
    error = jose.Field(
        'error', omitempty=True, decoder=AcmeError.from_json)
    key_authorization = jose.Field('keyAuthorization', omitempty=True)


class Authorization(jose.JSONObjectWithFields):
    """
    An authorization resource.
    """
    identifier = jose.Field(
        'identifier', omitempty=True, decoder=messages.Identifier.from_json)
    status = jose.Field('status', omitempty=True, default=STATUS_PENDING)
    expires = jose.Field('expires', omitempty=True)
    challenges = jose.Field('challenges', omitempty=True, default=())
    wildcard = jose.Field('wildcard', omitempty=True)

    @challenges.decoder
    def challenges(value):
        return tuple(Challenge.from_json(chall) for chall in value)


class Order(jose.JSONObjectWithFields):
    """
    An order resource.
    """
    status = jose.Field('status', omitempty=True, default=STATUS_PENDING)
    expires = jose.Field('expires', omitempty=True)
    identifiers = jose.Field('identifiers', omitempty=True, default=())
    authorizations = jose.Field('authorizations', omitempty=True, default=())
    finalize = jose.Field('finalize', omitempty=True)
    certificate = jose.Field('certificate', omitempty=True)
    error = jose.Field(
        'error', omitempty=True, decoder=AcmeError.from_json)

    @identifiers.decoder
    def identifiers(value):
        return tuple(messages.Identifier.from_json(i) for i in value)

    @authorizations.decoder
    def authorizations(value):
        return tuple(value)


@attr.s(frozen=True)
class TransportResult(object):
    """
    The outcome of one round trip with the ACME server.

    :ivar str location: The ``Location`` header, if any.
    :ivar resource: The decoded resource body; ``None`` when the server
        answered with a problem document.
    :ivar dict links: ``Link`` header URLs keyed by relation.  A relation
        may occur more than once, so each value is a tuple of URLs in header
        order.
    :ivar AcmeError error: The problem document, if the request failed.
    :ivar str nonce: The ``Replay-Nonce`` delivered with the response, to be
        used by the next signed request.
    """
    location = attr.ib(default=None)
    resource = attr.ib(default=None)
    links = attr.ib(default=attr.Factory(dict))
    error = attr.ib(default=None)
    nonce = attr.ib(default=None)

    def link(self, rel):
        """
        The first URL with the given relation, or ``None``.
        """
        urls = self.links.get(rel)
        if urls:
            return urls[0]
        return None


__all__ = [
    'AcmeError', 'Challenge', 'Authorization', 'Order', 'TransportResult',
    'is_terminal', 'TERMINAL_STATUSES', 'STATUS_PENDING', 'STATUS_READY',
    'STATUS_PROCESSING', 'STATUS_VALID', 'STATUS_INVALID', 'STATUS_REVOKED',
    'STATUS_DEACTIVATED', 'STATUS_EXPIRED']
