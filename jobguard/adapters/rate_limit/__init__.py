"""Rate limiting adapters.

A small abstraction layer so the HTTP surface can start with an in-memory
limiter and later migrate to a shared store without changing the routes.
"""
