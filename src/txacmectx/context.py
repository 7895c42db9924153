"""
Contexts for ACME resources.

An `AcmeContext` is one account's session with an ACME server: the account
key, the account URL and the single anti-replay nonce the next signed request
must carry.  Resource contexts (`EntityContext` and the challenge,
authorization and order contexts composed from it) bind a resource URL to
that session.  They never cache resource bodies; every call returns a fresh
snapshot.

                              order --+--> finalize
                                |
                                V
                          authorization
                                |
                                V
                            challenge --> validate

A typical caller::

    ctx = AcmeContext(key, HTTPTransport(), kid=account_url,
                      new_nonce_url=directory['newNonce'])
    for authz in (yield ctx.order(order_url).authorizations()):
        challenge = yield authz.challenge(u'http-01')
        # ... serve challenge.token / key authorization ...
        yield challenge.validate()
        yield poll_until_terminal(challenge, reactor)
"""
import attr
from eliot.twisted import DeferredContext
from josepy.json_util import encode_b64jose
from twisted.internet import defer
from twisted.internet.task import deferLater
from zope.interface.verify import verifyObject

from txacmectx.errors import (
    MissingNonce, PollingTimeout, ProtocolError, TransportError)
from txacmectx.interfaces import ITransport
from txacmectx.jws import sign_envelope
from txacmectx.logging import (
    LOG_BAD_NONCE_RETRY,
    LOG_CHALLENGE_VALIDATE,
    LOG_ENTITY_FETCH,
    LOG_ENTITY_POST,
    LOG_NONCE_STORE,
    LOG_NONCE_TAKE,
    LOG_POLL,
    )
from txacmectx.messages import (
    STATUS_DEACTIVATED, Authorization, Challenge, Order, is_terminal)
from txacmectx.util import tap


class AcmeContext(object):
    """
    One account's session with an ACME server.

    The session owns the current nonce.  Signed requests are serialized: the
    whole "take nonce, sign, send, store the new nonce" sequence runs under a
    `~twisted.internet.defer.DeferredLock`, so concurrent callers queue up
    instead of racing for the same nonce.
    """
    def __init__(self, key, transport, kid=None, new_nonce_url=None,
                 nonce=None):
        """
        :param ~txacmectx.key.AccountKey key: The account key.
        :param transport: An `~txacmectx.interfaces.ITransport` provider.
        :param str kid: The account URL, or ``None`` to embed the public key
            in each request instead.
        :param str new_nonce_url: Where to get a nonce when none is on hand.
        :param str nonce: A nonce already obtained, e.g. from the directory
            request.
        """
        verifyObject(ITransport, transport)
        self.key = key
        self.transport = transport
        self.kid = kid
        self.new_nonce_url = new_nonce_url
        self._nonce = nonce
        self._lock = defer.DeferredLock()

    @property
    def nonce(self):
        """
        The nonce the next signed request will use, if one is on hand.
        """
        return self._nonce

    def _store_nonce(self, nonce):
        """
        Keep the nonce delivered with a response we actually received.
        """
        with LOG_NONCE_STORE(nonce=nonce):
            if nonce is not None:
                self._nonce = nonce

    def _take_nonce(self):
        """
        Consume the current nonce, fetching a fresh one if there is none.

        :rtype: ``Deferred[str]``
        """
        action = LOG_NONCE_TAKE()
        if self._nonce is not None:
            with action:
                nonce, self._nonce = self._nonce, None
                action.add_success_fields(nonce=nonce)
                return defer.succeed(nonce)
        with action.context():
            if self.new_nonce_url is None:
                return DeferredContext(defer.fail(MissingNonce(
                    u'No nonce on hand and no newNonce URL'))
                    ).addActionFinish()
            return (
                DeferredContext(self.transport.head(self.new_nonce_url))
                .addCallback(tap(
                    lambda nonce: action.add_success_fields(nonce=nonce)))
                .addActionFinish())

    @defer.inlineCallbacks
    def _post_once(self, url, payload, resource_type):
        nonce = yield self._take_nonce()
        try:
            envelope = sign_envelope(
                self.key, payload, url, nonce, kid=self.kid)
        except Exception:
            # The nonce never left the process, so it is still good.
            self._nonce = nonce
            raise
        try:
            result = yield self.transport.post(url, envelope, resource_type)
        except TransportError as error:
            self._store_nonce(error.nonce)
            raise
        self._store_nonce(result.nonce)
        return result

    @defer.inlineCallbacks
    def _post(self, url, payload, resource_type):
        result = yield self._post_once(url, payload, resource_type)
        if result.error is not None and result.error.is_bad_nonce():
            LOG_BAD_NONCE_RETRY(nonce=result.nonce, url=url).write()
            result = yield self._post_once(url, payload, resource_type)
        return result

    def post(self, url, payload, resource_type):
        """
        Sign ``payload`` for ``url`` and send it.

        A ``badNonce`` rejection is retried exactly once, with the nonce the
        rejection delivered.  Any other problem document is returned in the
        result, not raised.

        :param str url: The URL to post to.
        :param payload: The payload; ``None`` for POST-as-GET.
        :param resource_type: The type to decode the response body with.

        :rtype: ``Deferred[~txacmectx.messages.TransportResult]``
        """
        return self._lock.run(self._post, url, payload, resource_type)

    def entity(self, location, resource_type):
        return EntityContext(
            context=self, location=location, resource_type=resource_type)

    def challenge(self, location, type, token):
        return ChallengeContext(
            entity=self.entity(location, Challenge), type=type, token=token)

    def authorization(self, location):
        return AuthorizationContext(
            entity=self.entity(location, Authorization))

    def order(self, location):
        return OrderContext(entity=self.entity(location, Order))


@attr.s(frozen=True)
class EntityContext(object):
    """
    A resource URL bound to an `AcmeContext`.

    :ivar AcmeContext context: The session.
    :ivar str location: The resource URL.
    :ivar resource_type: The `~josepy.interfaces.JSONDeSerializable` type of
        the resource.
    """
    context = attr.ib()
    location = attr.ib()
    resource_type = attr.ib()

    def fetch(self):
        """
        Fetch the resource with POST-as-GET.

        :raises ~txacmectx.errors.ProtocolError: If the server answers with a
            problem document.

        :return: A fresh snapshot of the resource.
        """
        action = LOG_ENTITY_FETCH(url=self.location)
        with action.context():
            return (
                DeferredContext(self.sign_and_post(None, ensure_success=True))
                .addCallback(lambda result: result.resource)
                .addCallback(
                    tap(lambda r: action.add_success_fields(resource=r)))
                .addActionFinish())

    def sign_and_post(self, payload, ensure_success=False):
        """
        Sign ``payload`` and post it to the resource.

        :param payload: The payload; ``None`` for POST-as-GET.
        :param bool ensure_success: Raise instead of returning a result that
            carries a problem document.

        :raises ~txacmectx.errors.ProtocolError: If ``ensure_success`` is set
            and the server answers with a problem document.

        :rtype: ``Deferred[~txacmectx.messages.TransportResult]``
        """
        def cb_check_result(result):
            error_type = None if result.error is None else result.error.typ
            action.add_success_fields(error_type=error_type)
            if ensure_success and result.error is not None:
                raise ProtocolError(result.error, self.location)
            return result

        action = LOG_ENTITY_POST(url=self.location)
        with action.context():
            return (
                DeferredContext(self.context.post(
                    self.location, payload, self.resource_type))
                .addCallback(cb_check_result)
                .addActionFinish())


@attr.s(frozen=True)
class ChallengeContext(object):
    """
    A challenge, with its type and token as they were when the challenge was
    listed.  Those never change, whatever status the challenge moves to.
    """
    entity = attr.ib()
    type = attr.ib()
    token = attr.ib()

    @property
    def location(self):
        return self.entity.location

    def fetch(self):
        return self.entity.fetch()

    def key_authorization(self):
        return self.entity.context.key.key_authorization(self.token)

    def validate(self):
        """
        Tell the server the challenge is ready to be validated.

        This does not wait for validation; the returned challenge is the
        server's immediate answer, usually ``processing``.  A challenge that
        reports ``invalid`` with an error is returned like any other; a
        request the server rejects raises.

        :raises ~txacmectx.errors.ProtocolError: If the server rejects the
            request.

        :rtype: ``Deferred[~txacmectx.messages.Challenge]``
        """
        action = LOG_CHALLENGE_VALIDATE(
            url=self.location, challenge_type=self.type)
        with action.context():
            payload = {u'keyAuthorization': self.key_authorization()}
            return (
                DeferredContext(
                    self.entity.sign_and_post(payload, ensure_success=True))
                .addCallback(lambda result: result.resource)
                .addCallback(
                    tap(lambda c: action.add_success_fields(challenge=c)))
                .addActionFinish())


@attr.s(frozen=True)
class AuthorizationContext(object):
    """
    An authorization for one identifier.
    """
    entity = attr.ib()

    @property
    def location(self):
        return self.entity.location

    def fetch(self):
        return self.entity.fetch()

    @defer.inlineCallbacks
    def challenges(self):
        """
        The challenges currently offered for this authorization.

        :rtype: ``Deferred[List[ChallengeContext]]``
        """
        authorization = yield self.fetch()
        context = self.entity.context
        return [
            context.challenge(chall.url, chall.typ, chall.token)
            for chall in authorization.challenges]

    @defer.inlineCallbacks
    def challenge(self, type):
        """
        The offered challenge of the given type, or ``None``.

        :rtype: ``Deferred[Optional[ChallengeContext]]``
        """
        challenges = yield self.challenges()
        for challenge in challenges:
            if challenge.type == type:
                return challenge
        return None

    def deactivate(self):
        """
        Deactivate the authorization.

        :rtype: ``Deferred[~txacmectx.messages.Authorization]``
        """
        return (
            self.entity.sign_and_post(
                {u'status': STATUS_DEACTIVATED}, ensure_success=True)
            .addCallback(lambda result: result.resource))


@attr.s(frozen=True)
class OrderContext(object):
    """
    A certificate order.
    """
    entity = attr.ib()

    @property
    def location(self):
        return self.entity.location

    def fetch(self):
        return self.entity.fetch()

    @defer.inlineCallbacks
    def authorizations(self):
        """
        :rtype: ``Deferred[List[AuthorizationContext]]``
        """
        order = yield self.fetch()
        context = self.entity.context
        return [context.authorization(url) for url in order.authorizations]

    @defer.inlineCallbacks
    def finalize(self, csr):
        """
        Request issuance once every authorization is valid.

        :param bytes csr: The DER-encoded certificate signing request.

        :raises ~txacmectx.errors.TransportError: If the order has no
            ``finalize`` URL.

        :rtype: ``Deferred[~txacmectx.messages.Order]``
        """
        order = yield self.fetch()
        if not order.finalize:
            raise TransportError(
                u'Order {} has no finalize URL'.format(self.location))
        result = yield self.entity.context.entity(
            order.finalize, Order,
        ).sign_and_post({u'csr': encode_b64jose(csr)}, ensure_success=True)
        return result.resource


def poll_until_terminal(context, clock, timeout=300.0, done=is_terminal):
    """
    Re-fetch a resource until its status is final.

    The first fetch happens at once; between fetches the wait starts at half
    a second and doubles, but never runs past ``timeout``.

    :param context: Any resource context with a ``fetch`` method.
    :param clock: The ``IReactorTime`` implementation to use; usually the
        reactor, when not testing.
    :param float timeout: Maximum time to poll in seconds, before giving up.
    :param done: Decides whether a status is final.

    :raises ~txacmectx.errors.PollingTimeout: If the resource is still not
        done after ``timeout`` seconds.

    :rtype: ``Deferred``
    :return: The last fetched resource.
    """
    action = LOG_POLL(url=context.location, timeout=float(timeout))
    with action.context():
        return (
            DeferredContext(_poll(context, clock, timeout, done))
            .addCallback(tap(
                lambda r: action.add_success_fields(status=r.status)))
            .addActionFinish())


@defer.inlineCallbacks
def _poll(context, clock, timeout, done):
    start = clock.seconds()
    sleep = 0.5
    while True:
        resource = yield context.fetch()
        if done(resource.status):
            return resource
        elapsed = clock.seconds() - start
        if elapsed >= timeout:
            raise PollingTimeout(resource)
        yield deferLater(clock, min(sleep, timeout - elapsed), lambda: None)
        sleep += sleep


__all__ = [
    'AcmeContext', 'EntityContext', 'ChallengeContext',
    'AuthorizationContext', 'OrderContext', 'poll_until_terminal']
