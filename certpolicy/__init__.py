"""
Certificate chain trust-policy evaluation for mTLS client authentication.
"""

__version__ = "1.0.0"
