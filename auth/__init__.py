"""auth/ -- Authentication and authorization package for ServiceHub.

Layer rule: auth/ imports only stdlib + third-party libraries (plus
core.config for type hints). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
