"""HTTP API for the adaptive router."""
