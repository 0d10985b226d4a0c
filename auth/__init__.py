"""auth/ -- Stateless credential subsystem for LiveStation.

Signing secret, token codec, the three token kinds, password hashing, the
origin guard, and the user store / mailer collaborators the HTTP flows use.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
