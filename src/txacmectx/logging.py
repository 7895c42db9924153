"""
Eliot message and action definitions.
"""
from eliot import ActionType, Field, MessageType, fields

NONCE = Field.for_types(
    u'nonce',
    [str, None],
    u'An anti-replay nonce value')

KID = Field.for_types(
    u'kid',
    [str, None],
    u'The key identifier (account URL) used in a JWS header')

LOG_JWS_SIGN = ActionType(
    u'txacmectx:jws:sign',
    fields(NONCE, KID, url=str, alg=str),
    fields(),
    u'Signing a message with JWS')

LOG_NONCE_TAKE = ActionType(
    u'txacmectx:nonce:take',
    fields(),
    fields(NONCE),
    u'Consuming the current nonce')

LOG_NONCE_STORE = ActionType(
    u'txacmectx:nonce:store',
    fields(NONCE),
    fields(),
    u'Storing the nonce delivered with a response')

LOG_BAD_NONCE_RETRY = MessageType(
    u'txacmectx:nonce:bad-nonce-retry',
    fields(NONCE, url=str),
    u'The server rejected our nonce; retrying once with the nonce it sent')

LOG_HTTP_REQUEST = ActionType(
    u'txacmectx:http:request',
    fields(method=str, url=str),
    fields(Field.for_types(u'content_type',
                           [str, None],
                           u'Content-Type header field'),
           code=int),
    u'An HTTP request made by the transport')

LOG_HTTP_PARSE_LINKS = ActionType(
    u'txacmectx:http:parse-links',
    fields(raw_link=str),
    fields(parsed_links=dict),
    u'Parsing HTTP Links')

LOG_ENTITY_FETCH = ActionType(
    u'txacmectx:entity:fetch',
    fields(url=str),
    fields(Field(u'resource',
                 lambda resource: resource.to_json(),
                 u'The fetched resource')),
    u'Fetching a resource with POST-as-GET')

LOG_ENTITY_POST = ActionType(
    u'txacmectx:entity:post',
    fields(url=str),
    fields(Field.for_types(u'error_type',
                           [str, None],
                           u'The problem type returned, if any')),
    u'Posting a signed payload to a resource')

LOG_CHALLENGE_VALIDATE = ActionType(
    u'txacmectx:challenge:validate',
    fields(url=str, challenge_type=str),
    fields(Field(u'challenge',
                 lambda challenge: challenge.to_json(),
                 u'The acknowledged challenge')),
    u'Asking the server to validate a challenge')

LOG_POLL = ActionType(
    u'txacmectx:poll',
    fields(url=str, timeout=float),
    fields(Field.for_types(u'status',
                           [str, None],
                           u'The final status')),
    u'Polling a resource until it reaches a terminal status')
