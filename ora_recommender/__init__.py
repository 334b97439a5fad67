"""
Ora recommendation engine.

Turns a user's onboarding answers into a short, ranked list of catalog
content and stores it per user under a run key and a ``latest`` alias.
"""

__version__ = "1.0.0"
