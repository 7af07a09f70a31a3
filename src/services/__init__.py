"""Business logic services used by handlers.

Services are wired together by services.container and imported lazily by the
handlers so that GET / and /health never open a database connection.
"""
