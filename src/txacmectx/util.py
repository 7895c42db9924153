"""
Utility functions shared by the signing and context code.
"""
import json
from functools import wraps

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from twisted.internet.defer import maybeDeferred


def generate_private_key(key_type):
    """
    Generate a random private key using sensible parameters.

    :param str key_type: The type of key to generate. One of: ``rsa``,
        ``ec``.
    """
    if key_type == u'rsa':
        return rsa.generate_private_key(
            public_exponent=65537, key_size=2048, backend=default_backend())
    if key_type == u'ec':
        return ec.generate_private_key(ec.SECP256R1(), default_backend())
    raise ValueError(key_type)


def canonical_json(obj):
    """
    Serialize ``obj`` to JSON with sorted keys and no insignificant
    whitespace.

    The same input always produces the same bytes; JWK thumbprints and
    signed envelopes depend on it.

    :rtype: bytes
    """
    return json.dumps(
        obj, ensure_ascii=True, separators=(',', ':'), sort_keys=True,
    ).encode('utf-8')


def tap(f):
    """
    "Tap" a Deferred callback chain with a function whose return value is
    ignored.
    """
    @wraps(f)
    def _cb(res, *a, **kw):
        d = maybeDeferred(f, res, *a, **kw)
        d.addCallback(lambda ignored: res)
        return d
    return _cb


__all__ = ['generate_private_key', 'canonical_json', 'tap']
