import json

from cryptography.hazmat.primitives.asymmetric import ec, rsa
from hypothesis import given
from hypothesis import strategies as s
from testtools.matchers import Equals
from testtools.twistedsupport import succeeded
from twisted.internet.defer import succeed

from txacmectx.testing import TXACMETestCase
from txacmectx.util import canonical_json, generate_private_key, tap


class GeneratePrivateKeyTests(TXACMETestCase):
    """
    `.generate_private_key` generates private keys of various types using
    sensible parameters.
    """
    def test_unknown_key_type(self):
        """
        Passing an unknown key type results in :exc:`.ValueError`.
        """
        with self.assertRaises(ValueError):
            generate_private_key(u'not-a-real-key-type')

    def test_rsa_key(self):
        """
        Passing ``u'rsa'`` results in a fresh 2048-bit RSA private key.
        """
        key1 = generate_private_key(u'rsa')
        self.assertIsInstance(key1, rsa.RSAPrivateKey)
        self.assertThat(key1.key_size, Equals(2048))
        key2 = generate_private_key(u'rsa')
        self.assertNotEqual(
            key1.public_key().public_numbers(),
            key2.public_key().public_numbers())

    def test_ec_key(self):
        """
        Passing ``u'ec'`` results in a P-256 private key.
        """
        key = generate_private_key(u'ec')
        self.assertIsInstance(key, ec.EllipticCurvePrivateKey)
        self.assertThat(key.curve.name, Equals(u'secp256r1'))


JSON_VALUES = s.recursive(
    s.none() | s.booleans() | s.integers() | s.text(),
    lambda children: s.lists(children) | s.dictionaries(s.text(), children),
    max_leaves=20)


class CanonicalJSONTests(TXACMETestCase):
    """
    `.canonical_json` serializes without insignificant whitespace and with
    sorted keys.
    """
    def test_compact_sorted(self):
        self.assertThat(
            canonical_json({u'n': u'abc', u'e': u'AQAB', u'kty': u'RSA'}),
            Equals(b'{"e":"AQAB","kty":"RSA","n":"abc"}'))

    def test_non_ascii(self):
        self.assertThat(
            canonical_json({u'detail': u'caf\xe9'}),
            Equals(b'{"detail":"caf\\u00e9"}'))

    @given(JSON_VALUES)
    def test_round_trip_stable(self, value):
        """
        Re-serializing parsed output gives the same bytes.
        """
        serialized = canonical_json(value)
        self.assertThat(
            canonical_json(json.loads(serialized.decode('utf-8'))),
            Equals(serialized))


class TapTests(TXACMETestCase):
    """
    `.tap` calls a function for its side effect and passes the result on.
    """
    def test_passes_result(self):
        seen = []
        d = succeed(42).addCallback(tap(seen.append))
        self.assertThat(d, succeeded(Equals(42)))
        self.assertThat(seen, Equals([42]))

    def test_waits_for_deferred(self):
        d = succeed(u'x').addCallback(tap(lambda r: succeed(r + u'y')))
        self.assertThat(d, succeeded(Equals(u'x')))
