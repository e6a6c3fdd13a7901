"""
schoolauth - identity and authorization for the school portal API.

Password hashing, session and one-time tokens, and the authorization
guard that route handlers compose with.
"""

__version__ = "0.1.0"
