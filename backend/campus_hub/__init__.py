"""Application package for the Campus Hub student-services backend.

This package exposes the service, repository and model modules used by
the FastAPI application: accommodation listings, the peer marketplace,
landlord/tenant messaging and the static content pages.
"""
