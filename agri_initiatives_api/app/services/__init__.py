"""
Service layer abstraction.

Each service encapsulates business logic for a domain and talks to the
key-value store and the auth provider it is constructed with, so the
API handlers never touch persistence directly.
"""
