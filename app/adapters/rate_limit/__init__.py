"""Window store adapters.

This package provides a small abstraction layer over counter storage so the
service can use Redis as the shared store and fall back to an in-process
store without changing the decision engine or the HTTP layer.
"""
