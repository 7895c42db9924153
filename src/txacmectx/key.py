"""
Account keys and the values derived from them.

An `AccountKey` is what the ACME server knows an account by.  Every signed
request, every key authorization and every ``dns-01`` record value is derived
from it, so everything here is a pure function of the key.
"""
import hashlib

import attr
import josepy as jose
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from josepy.errors import Error as JoseError
from josepy.jwa import ES256, ES384, ES512, RS256

from txacmectx.errors import CryptoError
from txacmectx.util import canonical_json

_EC_ALGORITHMS = {
    u'secp256r1': ES256,
    u'secp384r1': ES384,
    u'secp521r1': ES512,
}


def _check_algorithm(instance, attribute, alg):
    if alg.name.startswith((u'RS', u'PS')):
        expected = jose.JWKRSA
    elif alg.name.startswith(u'ES'):
        expected = jose.JWKEC
    else:
        raise CryptoError(u'Unsupported signature algorithm {!r}'.format(
            alg.name))
    if not isinstance(instance.jwk, expected):
        raise CryptoError(
            u'{} cannot be used with a {} key'.format(
                alg.name, instance.jwk.typ))


@attr.s(frozen=True)
class AccountKey(object):
    """
    An ACME account keypair together with its signature algorithm.

    :ivar ~josepy.jwk.JWK jwk: The key.
    :ivar ~josepy.jwa.JWASignature alg: The signing algorithm; fixed for the
        lifetime of the key.
    """
    jwk = attr.ib(validator=attr.validators.instance_of(jose.JWK))
    alg = attr.ib(default=RS256, validator=_check_algorithm)

    @classmethod
    def from_private_key(cls, key, alg=None):
        """
        Wrap a ``cryptography`` private key, picking the usual algorithm for
        its type when ``alg`` is not given.
        """
        if isinstance(key, rsa.RSAPrivateKey):
            return cls(jwk=jose.JWKRSA(key=key), alg=alg or RS256)
        if isinstance(key, ec.EllipticCurvePrivateKey):
            if alg is None:
                try:
                    alg = _EC_ALGORITHMS[key.curve.name]
                except KeyError:
                    raise CryptoError(
                        u'Unsupported curve {!r}'.format(key.curve.name))
            return cls(jwk=jose.JWKEC(key=key), alg=alg)
        raise CryptoError(u'Unsupported key type {!r}'.format(type(key)))

    @property
    def algorithm(self):
        """
        The JWS ``alg`` name, e.g. ``RS256``.
        """
        return self.alg.name

    def sign_data(self, data):
        """
        Sign ``data`` with this key.

        ECDSA signatures are randomized, so signing the same data twice need
        not give the same bytes.

        :param bytes data: The data to sign.

        :raises CryptoError: If the key cannot sign.
        :rtype: bytes
        """
        try:
            return self.alg.sign(self.jwk.key, data)
        except (JoseError, UnsupportedAlgorithm, TypeError,
                ValueError) as error:
            raise CryptoError(error)

    def compute_hash(self, data):
        """
        Digest ``data`` with SHA-256, the digest RFC 7638 uses for
        thumbprints.

        :rtype: bytes
        """
        digest = hashes.Hash(hashes.SHA256())
        digest.update(data)
        return digest.finalize()

    def json_web_key(self):
        """
        The public key as a JWK with only the members required by RFC 7638,
        e.g. ``{'e': ..., 'kty': 'RSA', 'n': ...}``.

        :rtype: dict
        """
        try:
            jobj = self.jwk.public_key().to_json()
        except (UnsupportedAlgorithm, ValueError) as error:
            raise CryptoError(error)
        return {k: v for k, v in jobj.items() if k in self.jwk.required}

    def thumbprint(self):
        """
        The RFC 7638 thumbprint of the public key.

        :rtype: bytes
        """
        return self.compute_hash(canonical_json(self.json_web_key()))

    def key_authorization(self, token):
        """
        The key authorization for a challenge token:
        ``token || '.' || base64url(thumbprint)``.

        :param str token: The challenge token, as sent by the server.

        :rtype: str
        """
        return u'{}.{}'.format(
            token, jose.b64encode(self.thumbprint()).decode('ascii'))

    def dns_txt_record_value(self, token):
        """
        The value of the ``_acme-challenge`` TXT record for a ``dns-01``
        challenge.  RFC 8555 fixes the digest to SHA-256.

        :param str token: The challenge token.

        :rtype: str
        """
        h = hashlib.sha256(self.key_authorization(token).encode('utf-8'))
        return jose.b64encode(h.digest()).decode('ascii')


__all__ = ['AccountKey']
