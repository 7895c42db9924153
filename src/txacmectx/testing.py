"""
Utilities for testing with txacmectx.
"""
import attr
from testtools import TestCase
from twisted.internet import reactor
from twisted.internet.defer import Deferred, fail, succeed
from zope.interface import implementer

from txacmectx.errors import MissingNonce, TransportError
from txacmectx.interfaces import ITransport


class TXACMETestCase(TestCase):
    """
    Common code for all tests for the txacmectx project.
    """

    def tearDown(self):
        super(TXACMETestCase, self).tearDown()

        # Make sure the main reactor is clean after each test.
        junk = []
        for delayed_call in reactor.getDelayedCalls():
            junk.append(delayed_call.func)
            delayed_call.cancel()
        if junk:
            raise AssertionError(
                'Reactor is not clean. DelayedCalls: %s' % (junk,))


@attr.s
class Request(object):
    """
    A request seen by `FakeTransport`.
    """
    method = attr.ib()
    url = attr.ib()
    envelope = attr.ib(default=None)


@implementer(ITransport)
@attr.s
class FakeTransport(object):
    """
    An in-memory transport that answers from a script.

    :ivar list responses: What to answer GET and POST requests with, in
        order.  Each item is a `~txacmectx.messages.TransportResult` (whose
        ``resource`` may be a JSON object, decoded with the requested
        resource type), an exception to fail with, or a ``Deferred`` the
        test fires itself.
    :ivar list nonces: What to answer HEAD requests with, in order.
    :ivar list requests: Every `Request` made, in order.
    """
    responses = attr.ib(default=attr.Factory(list))
    nonces = attr.ib(default=attr.Factory(list))
    requests = attr.ib(default=attr.Factory(list))

    @property
    def envelopes(self):
        """
        The envelopes of every POST made so far.
        """
        return [r.envelope for r in self.requests if r.method == u'POST']

    def head(self, url):
        self.requests.append(Request(u'HEAD', url))
        if not self.nonces:
            return fail(MissingNonce(u'No Replay-Nonce from {}'.format(url)))
        return succeed(self.nonces.pop(0))

    def get(self, url, resource_type):
        return self._respond(Request(u'GET', url), resource_type)

    def post(self, url, envelope, resource_type):
        return self._respond(Request(u'POST', url, envelope), resource_type)

    def _respond(self, request, resource_type):
        self.requests.append(request)
        if not self.responses:
            return fail(TransportError(
                u'No more requests expected, but {!r} made.'.format(request)))
        response = self.responses.pop(0)
        if isinstance(response, Deferred):
            return response
        if isinstance(response, Exception):
            return fail(response)
        if isinstance(response.resource, dict):
            response = attr.evolve(
                response, resource=resource_type.from_json(response.resource))
        return succeed(response)


__all__ = ['FakeTransport', 'Request', 'TXACMETestCase']
