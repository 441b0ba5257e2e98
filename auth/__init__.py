"""auth/ -- Authentication and authorization package for the job board.

Layer rule: auth/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/ or board/.
api/ imports from auth/, not the other way around.
"""
