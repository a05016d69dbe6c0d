"""Health metrics derivation and recommendation engine.

This package contains the clinical rules, domain models and scheduling
logic, isolated from storage, email delivery and rendering so it can be
tested and reasoned about in isolation.
"""
