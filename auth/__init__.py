"""auth/ -- Identity provider client, bearer verification, and the login flow.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or accounts/.
api/ and web/ import from auth/, not the other way around.
"""
