"""API routers for quire."""
