"""
Team portal core: credentials, session tokens, authorization and the in-memory store.
No web framework here; backend.api wires it into FastAPI.
"""
