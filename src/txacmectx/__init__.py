"""
Signing and resource contexts for ACME clients on Twisted.
"""
__version__ = '0.1.0'
