"""auth/ -- Session-bound token authentication and role-based access guard.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Configuration values arrive as
constructor arguments; api/ wires the components together.
"""
