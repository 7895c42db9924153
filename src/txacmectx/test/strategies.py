"""
Miscellaneous strategies for Hypothesis testing.
"""
import string

from hypothesis import strategies as s
from twisted.python.url import URL


def tokens():
    """
    Strategy for generating challenge tokens and nonces: non-empty base64url
    text.
    """
    return s.text(
        alphabet=string.ascii_letters + string.digits + u'-_',
        min_size=1, max_size=64)


def dns_labels():
    """
    Strategy for generating limited charset DNS labels.
    """
    # This is too limited, but whatever
    return s.from_regex(u'\\A[a-z]{3}[a-z0-9-]{0,21}[a-z]\\Z')


def dns_names():
    """
    Strategy for generating limited charset DNS names.
    """
    return (
        s.lists(dns_labels(), min_size=1, max_size=10)
        .map(u'.'.join))


def urls():
    """
    Strategy for generating ``https`` URLs as text.
    """
    return s.builds(
        URL,
        scheme=s.just(u'https'),
        host=dns_names(),
        path=s.lists(s.text(
            max_size=64,
            alphabet=s.characters(exclude_characters=u'/?#',
                                  exclude_categories=('Cs',))
        ), min_size=1, max_size=10)).map(lambda url: url.asText())


__all__ = ['tokens', 'dns_labels', 'dns_names', 'urls']
