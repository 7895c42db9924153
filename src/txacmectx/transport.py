"""
HTTP transport for ACME, built on treq.

`HTTPTransport` only moves bytes and parses responses: it does not sign,
does not hold nonces between requests and does not retry.  Signing and the
nonce lifecycle live in `txacmectx.context`.
"""
import json
import re

from eliot.twisted import DeferredContext
from josepy.errors import DeserializationError
from josepy.json_util import decode_b64jose
from treq.client import HTTPClient
from twisted.internet import defer
from twisted.python.url import URL
from twisted.web.client import Agent, HTTPConnectionPool
from twisted.web.http_headers import Headers
from zope.interface import implementer

from txacmectx import __version__
from txacmectx.errors import MissingNonce, TransportError
from txacmectx.interfaces import ITransport
from txacmectx.logging import LOG_HTTP_PARSE_LINKS, LOG_HTTP_REQUEST
from txacmectx.messages import AcmeError, TransportResult
from txacmectx.util import tap

_DEFAULT_TIMEOUT = 40

JSON_CONTENT_TYPE = b'application/json'
JOSE_CONTENT_TYPE = b'application/jose+json'
JSON_ERROR_CONTENT_TYPE = b'application/problem+json'
REPLAY_NONCE_HEADER = b'Replay-Nonce'


def _absolute(base, reference):
    """
    Resolve a possibly relative URL from a response header against the
    request URL.
    """
    return URL.fromText(base).click(reference).asText()


# Borrowed from requests, with modifications.
def _parse_header_links(response, base):
    """
    Parse the links from Link: header fields.

    Unlike a plain dict of links, a relation may occur several times (an
    ACME server may send several ``alternate`` links); every occurrence is
    kept, in header order.  A ``rel`` holding several space-separated
    relation types counts for each of them.

    :param response: The HTTP response.
    :param str base: The request URL, for resolving relative links.

    :rtype: ``Dict[str, Tuple[str, ...]]``
    :return: Link URLs keyed by relation.
    """
    values = response.headers.getRawHeaders(b'link', [])
    value = b','.join(values).decode('ascii')
    with LOG_HTTP_PARSE_LINKS(raw_link=value) as action:
        links = {}
        replace_chars = u' \'"'
        for val in re.split(u', *<', value):
            if not val.strip():
                continue
            try:
                url, params = val.split(u';', 1)
            except ValueError:
                url, params = val, u''

            url = _absolute(base, url.strip(u'<> \'"'))
            for param in params.split(u';'):
                try:
                    key, param_value = param.split(u'=', 1)
                except ValueError:
                    continue
                if key.strip(replace_chars).lower() != u'rel':
                    continue
                for rel in param_value.strip(replace_chars).split():
                    links.setdefault(rel, []).append(url)
        links = {rel: tuple(urls) for rel, urls in links.items()}
        action.add_success_fields(parsed_links=links)
        return links


def _maybe_location(response, base):
    """
    Get the Location: if there is one.
    """
    location = response.headers.getRawHeaders(b'location', [None])[0]
    if location is not None:
        return _absolute(base, location.decode('ascii'))
    return None


def _get_nonce(response):
    """
    Get the Replay-Nonce: if there is one, checking it is well formed.
    """
    nonce = response.headers.getRawHeaders(REPLAY_NONCE_HEADER, [None])[0]
    if nonce is None:
        return None
    nonce = nonce.decode('ascii')
    try:
        decode_b64jose(nonce)
    except DeserializationError as error:
        raise TransportError(
            u'Malformed Replay-Nonce {!r}: {}'.format(nonce, error),
            code=response.code)
    return nonce


@implementer(ITransport)
class HTTPTransport(object):
    """
    `~txacmectx.interfaces.ITransport` over HTTP(S).

    The current implementation makes one request at a time; overlapping
    requests fail.  `~txacmectx.context.AcmeContext` already serializes
    signed requests for a session.
    """
    timeout = _DEFAULT_TIMEOUT

    def __init__(self, treq_client=None, reactor=None,
                 timeout=_DEFAULT_TIMEOUT,
                 user_agent=u'txacmectx/{}'.format(
                     __version__).encode('ascii')):
        """
        :param treq_client: The treq ``HTTPClient`` to use, or ``None`` to
            make one with its own connection pool.
        :param reactor: The reactor for the default client.
        :param timeout: Seconds to wait for a response, or ``None`` for no
            limit.
        :param bytes user_agent: The ``User-Agent`` to send.
        """
        self._pool = None
        if treq_client is None:
            if reactor is None:
                from twisted.internet import reactor
            self._pool = HTTPConnectionPool(reactor)
            treq_client = HTTPClient(agent=Agent(reactor, pool=self._pool))
        self._treq = treq_client
        self._current_request = None
        self.timeout = timeout
        self._user_agent = user_agent

    def _send_request(self, method, url, **kwargs):
        """
        Send HTTP request.

        :param str method: The HTTP method to use.
        :param str url: The URL to make the request to.

        :return: Deferred firing with the HTTP response.
        """
        if self._current_request is not None:
            return defer.fail(TransportError(u'Overlapped HTTP request'))

        def cb_request_done(result):
            """
            Called when we got a response from the request, or failed to.
            """
            self._current_request = None
            return result

        def eb_transport_failure(f):
            raise TransportError(
                u'{} {} failed: {}'.format(method, url, f.getErrorMessage()))

        action = LOG_HTTP_REQUEST(method=method, url=url)
        with action.context():
            headers = kwargs.setdefault('headers', Headers())
            headers.setRawHeaders(b'user-agent', [self._user_agent])
            if self.timeout is not None:
                kwargs.setdefault('timeout', self.timeout)
            self._current_request = self._treq.request(method, url, **kwargs)
            return (
                DeferredContext(self._current_request)
                .addBoth(cb_request_done)
                .addErrback(eb_transport_failure)
                .addCallback(
                    tap(lambda r: action.add_success_fields(
                        code=r.code,
                        content_type=_content_type(r) or None)))
                .addActionFinish())

    @defer.inlineCallbacks
    def _parse_response(self, response, url, resource_type):
        """
        Turn an HTTP response into a `~txacmectx.messages.TransportResult`.

        :raises TransportError: If the response is neither a resource of the
            expected type nor a problem document.  The error still carries
            the nonce the response delivered.
        """
        body = yield response.content()
        nonce = _get_nonce(response)
        links = _parse_header_links(response, url)
        location = _maybe_location(response, url)
        content_type = _content_type(response).lower()

        if 400 <= response.code < 600:
            if not content_type.startswith(JSON_ERROR_CONTENT_TYPE.decode()):
                raise TransportError(
                    u'Unexpected {} response with Content-Type {!r}'.format(
                        response.code, content_type),
                    code=response.code, nonce=nonce)
            try:
                error = AcmeError.json_loads(body)
            except (ValueError, DeserializationError) as error:
                raise TransportError(
                    u'Malformed problem document: {}'.format(error),
                    code=response.code, nonce=nonce)
            return TransportResult(
                location=location, links=links, error=error, nonce=nonce)

        if not 200 <= response.code < 300:
            raise TransportError(
                u'Unexpected {} response'.format(response.code),
                code=response.code, nonce=nonce)
        if JSON_CONTENT_TYPE.decode() not in content_type:
            raise TransportError(
                u'Unexpected response Content-Type: {!r}. '
                u'Expecting {!r}.'.format(content_type, JSON_CONTENT_TYPE),
                code=response.code, nonce=nonce)
        try:
            resource = resource_type.json_loads(body)
        except (ValueError, DeserializationError) as error:
            raise TransportError(
                u'Malformed {}: {}'.format(resource_type.__name__, error),
                code=response.code, nonce=nonce)
        return TransportResult(
            location=location, resource=resource, links=links, nonce=nonce)

    def head(self, url):
        def cb_extract_nonce(response):
            nonce = _get_nonce(response)
            if nonce is None:
                raise MissingNonce(
                    u'No Replay-Nonce from {}'.format(url), code=response.code)
            return nonce
        return self._send_request(u'HEAD', url).addCallback(cb_extract_nonce)

    def get(self, url, resource_type):
        return (
            self._send_request(u'GET', url)
            .addCallback(self._parse_response, url, resource_type))

    def post(self, url, envelope, resource_type):
        headers = Headers({b'content-type': [JOSE_CONTENT_TYPE]})
        data = json.dumps(envelope).encode('utf-8')
        return (
            self._send_request(u'POST', url, data=data, headers=headers)
            .addCallback(self._parse_response, url, resource_type))

    def stop(self):
        """
        Stops the transport.

        This cancels a pending request and closes pooled connections.

        :return: A deferred which fires when the transport is stopped.
        """
        if self._current_request is not None:
            self._current_request.addErrback(lambda _: None)
            self._current_request.cancel()
            self._current_request = None
        if self._pool is not None:
            return self._pool.closeCachedConnections()
        return defer.succeed(None)


def _content_type(response):
    content_type = response.headers.getRawHeaders(b'content-type', [b''])[0]
    return content_type.decode('ascii')


__all__ = [
    'HTTPTransport', 'JSON_CONTENT_TYPE', 'JOSE_CONTENT_TYPE',
    'JSON_ERROR_CONTENT_TYPE', 'REPLAY_NONCE_HEADER']
