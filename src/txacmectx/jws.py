"""
ACME JWS envelopes.

Every request to an ACME server is a flattened JWS whose protected header
binds the request to a target URL and a single-use nonce::

    {
      "protected": base64url({"alg", "nonce", "url", "jwk" | "kid"}),
      "payload": base64url(payload),
      "signature": base64url(signature)
    }

..  seealso:: RFC 8555, section 6.2
"""
import josepy as jose

from txacmectx.logging import LOG_JWS_SIGN
from txacmectx.util import canonical_json


def _encode_payload(payload):
    """
    Serialize a request payload.

    ``None`` is a POST-as-GET and has an empty payload; anything else,
    including an empty object, is serialized as JSON.
    """
    if payload is None:
        return b''
    if isinstance(payload, jose.JSONDeSerializable):
        payload = payload.to_json()
    return canonical_json(payload)


def sign_envelope(key, payload, url, nonce, kid=None):
    """
    Wrap ``payload`` in a signed ACME JWS.

    The envelope is assembled here rather than with `acme.jws.JWS.sign` so
    that every signature goes through `~txacmectx.key.AccountKey.sign_data`
    and its `~txacmectx.errors.CryptoError` handling.

    :param ~txacmectx.key.AccountKey key: The account key to sign with.
    :param payload: A JSON-serializable object, a
        `~josepy.interfaces.JSONDeSerializable`, or ``None`` for POST-as-GET.
    :param str url: The URL the request will be sent to.
    :param str nonce: The anti-replay nonce to consume.
    :param str kid: The account URL.  When ``None``, the public key itself is
        embedded in the header instead, as for account creation.

    :raises ~txacmectx.errors.CryptoError: If the key cannot sign.
    :raises ValueError: If ``url`` or ``nonce`` is empty.

    :rtype: dict
    :return: The flattened JWS JSON serialization.
    """
    if not url:
        raise ValueError('A JWS for ACME must be bound to a URL')
    if not nonce:
        raise ValueError('A JWS for ACME must carry a nonce')

    with LOG_JWS_SIGN(url=url, nonce=nonce, kid=kid, alg=key.algorithm):
        header = {
            u'alg': key.algorithm,
            u'nonce': nonce,
            u'url': url,
        }
        if kid is None:
            header[u'jwk'] = key.json_web_key()
        else:
            header[u'kid'] = kid

        protected = jose.b64encode(canonical_json(header))
        encoded_payload = jose.b64encode(_encode_payload(payload))
        signature = key.sign_data(protected + b'.' + encoded_payload)
        return {
            u'protected': protected.decode('ascii'),
            u'payload': encoded_payload.decode('ascii'),
            u'signature': jose.b64encode(signature).decode('ascii'),
        }


__all__ = ['sign_envelope']
