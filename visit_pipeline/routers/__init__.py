"""API routers for the Visit Pipeline engine."""
