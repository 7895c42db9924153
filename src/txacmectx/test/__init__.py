"""
Tests for txacmectx.

Eliot messages are routed to trial's log.  ``HYPOTHESIS_PROFILE`` picks a
hypothesis profile: ``coverage`` runs fewer examples; ``ci`` drops the
per-example deadline, since RSA signing is slow on shared runners.
"""
from os import getenv

import eliot.twisted
from hypothesis import HealthCheck, settings

eliot.twisted.redirectLogsForTrial()

settings.register_profile(
    'coverage',
    max_examples=20, suppress_health_check=[HealthCheck.too_slow])
settings.register_profile('ci', deadline=None)
settings.load_profile(getenv('HYPOTHESIS_PROFILE', 'default'))
