"""
core/exceptions.py -- Exceptions shared across layers.

Only failures that must stop a request or the whole process live here.
Token and origin checks never raise; they return None/False instead.
"""


class ConfigurationError(RuntimeError):
    """The process cannot sign tokens: no secret and no fallback entropy.

    Fatal. The app lifespan resolves the signing secret at startup so a
    misconfigured production deployment refuses to start instead of serving
    protected routes unsigned.
    """
