"""
Core modules for the token limiter.

This package contains window accounting, quota evaluation, threshold
notification, pricing and the limiter facade.
"""
