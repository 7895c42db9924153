"""
Tests for `txacmectx.key`.
"""
import base64
import hashlib

import josepy as jose
from hypothesis import assume, given
from josepy.jwa import ES256, ES384, RS256, RS512
from testtools.matchers import Equals, Not, raises

from txacmectx.errors import CryptoError
from txacmectx.key import AccountKey
from txacmectx.test.strategies import tokens
from txacmectx.testing import TXACMETestCase
from txacmectx.util import canonical_json, generate_private_key

RSA_KEY_RAW = generate_private_key(u'rsa')
RSA_KEY = AccountKey.from_private_key(RSA_KEY_RAW)
EC_KEY = AccountKey.from_private_key(generate_private_key(u'ec'))

# A random example token for the tests that need one
EXAMPLE_TOKEN = u'BWYcfxzmOha7-7LoxziqPZIUr99BCz3BfbN9kzSFnrU'


class ConstructionTests(TXACMETestCase):
    """
    An `.AccountKey` fixes its algorithm at construction.
    """
    def test_rsa_default(self):
        """
        RSA keys default to ``RS256``.
        """
        self.assertThat(RSA_KEY.algorithm, Equals(u'RS256'))
        self.assertIsInstance(RSA_KEY.jwk, jose.JWKRSA)

    def test_rsa_explicit(self):
        """
        An explicit algorithm is kept.
        """
        key = AccountKey.from_private_key(RSA_KEY_RAW, RS512)
        self.assertThat(key.alg, Equals(RS512))

    def test_ec_curve(self):
        """
        EC keys get the algorithm matching their curve.
        """
        self.assertThat(EC_KEY.alg, Equals(ES256))
        self.assertIsInstance(EC_KEY.jwk, jose.JWKEC)

    def test_mismatched_algorithm(self):
        """
        An algorithm for another key type is refused.
        """
        self.assertThat(
            lambda: AccountKey(jwk=EC_KEY.jwk, alg=RS256),
            raises(CryptoError))
        self.assertThat(
            lambda: AccountKey(jwk=RSA_KEY.jwk, alg=ES384),
            raises(CryptoError))

    def test_unsupported_key_type(self):
        """
        Only RSA and EC private keys can be wrapped.
        """
        self.assertThat(
            lambda: AccountKey.from_private_key(object()),
            raises(CryptoError))

    def test_immutable(self):
        """
        The key and algorithm cannot be replaced.
        """
        with self.assertRaises(AttributeError):
            RSA_KEY.alg = ES256


class SigningTests(TXACMETestCase):
    """
    `.AccountKey.sign_data` signs with the fixed algorithm.
    """
    def test_rsa_signature_verifies(self):
        data = b'some data'
        signature = RSA_KEY.sign_data(data)
        self.assertTrue(
            RS256.verify(RSA_KEY.jwk.public_key().key, data, signature))
        self.assertFalse(
            RS256.verify(RSA_KEY.jwk.public_key().key, b'other', signature))

    def test_ec_signature_verifies(self):
        """
        ECDSA signatures are randomized but still verify.
        """
        data = b'some data'
        sig1 = EC_KEY.sign_data(data)
        sig2 = EC_KEY.sign_data(data)
        public = EC_KEY.jwk.public_key().key
        self.assertTrue(ES256.verify(public, data, sig1))
        self.assertTrue(ES256.verify(public, data, sig2))

    def test_public_key_cannot_sign(self):
        """
        A key without private material fails with `.CryptoError` instead of
        producing a signature.
        """
        key = AccountKey(jwk=RSA_KEY.jwk.public_key(), alg=RS256)
        self.assertThat(
            lambda: key.sign_data(b'data'), raises(CryptoError))


class ThumbprintTests(TXACMETestCase):
    """
    `.AccountKey.thumbprint` is the RFC 7638 thumbprint of the public key.
    """
    def test_required_members_only(self):
        """
        The JWK projection holds exactly the required public members.
        """
        self.assertThat(
            sorted(RSA_KEY.json_web_key()), Equals([u'e', u'kty', u'n']))
        self.assertThat(
            sorted(EC_KEY.json_web_key()),
            Equals([u'crv', u'kty', u'x', u'y']))

    def test_projection_deterministic(self):
        self.assertThat(
            canonical_json(RSA_KEY.json_web_key()),
            Equals(canonical_json(RSA_KEY.json_web_key())))

    def test_matches_josepy(self):
        """
        The thumbprint agrees with josepy's own computation.
        """
        self.assertThat(RSA_KEY.thumbprint(), Equals(RSA_KEY.jwk.thumbprint()))
        self.assertThat(EC_KEY.thumbprint(), Equals(EC_KEY.jwk.thumbprint()))

    def test_stable(self):
        self.assertThat(RSA_KEY.thumbprint(), Equals(RSA_KEY.thumbprint()))

    def test_public_key_same_thumbprint(self):
        """
        The thumbprint only depends on the public key.
        """
        public = AccountKey(jwk=RSA_KEY.jwk.public_key())
        self.assertThat(public.thumbprint(), Equals(RSA_KEY.thumbprint()))

    def test_distinct_keys(self):
        other = AccountKey.from_private_key(generate_private_key(u'rsa'))
        self.assertThat(other.thumbprint(), Not(Equals(RSA_KEY.thumbprint())))


class KeyAuthorizationTests(TXACMETestCase):
    """
    `.AccountKey.key_authorization` and
    `.AccountKey.dns_txt_record_value` are pure functions of the key and the
    token.
    """
    def test_format(self):
        thumbprint = base64.urlsafe_b64encode(
            RSA_KEY.jwk.thumbprint()).rstrip(b'=').decode('ascii')
        self.assertThat(
            RSA_KEY.key_authorization(EXAMPLE_TOKEN),
            Equals(EXAMPLE_TOKEN + u'.' + thumbprint))

    @given(token=tokens())
    def test_deterministic(self, token):
        self.assertThat(
            RSA_KEY.key_authorization(token),
            Equals(RSA_KEY.key_authorization(token)))

    @given(token1=tokens(), token2=tokens())
    def test_distinct_tokens(self, token1, token2):
        assume(token1 != token2)
        self.assertThat(
            RSA_KEY.key_authorization(token1),
            Not(Equals(RSA_KEY.key_authorization(token2))))

    def test_distinct_keys(self):
        self.assertThat(
            EC_KEY.key_authorization(EXAMPLE_TOKEN),
            Not(Equals(RSA_KEY.key_authorization(EXAMPLE_TOKEN))))

    def test_dns_txt_record_value(self):
        """
        The record value is the unpadded base64url SHA-256 of the key
        authorization.
        """
        thumbprint = base64.urlsafe_b64encode(
            EC_KEY.jwk.thumbprint()).rstrip(b'=').decode('ascii')
        key_authz = u'{}.{}'.format(EXAMPLE_TOKEN, thumbprint)
        expected = base64.urlsafe_b64encode(
            hashlib.sha256(key_authz.encode('utf-8')).digest()
        ).rstrip(b'=').decode('ascii')
        self.assertThat(
            EC_KEY.dns_txt_record_value(EXAMPLE_TOKEN), Equals(expected))

    def test_dns_txt_record_value_with_sha512_signatures(self):
        """
        The record digest stays SHA-256 whatever the signature algorithm.
        """
        key = AccountKey.from_private_key(RSA_KEY_RAW, RS512)
        self.assertThat(
            key.dns_txt_record_value(EXAMPLE_TOKEN),
            Equals(RSA_KEY.dns_txt_record_value(EXAMPLE_TOKEN)))
