"""HTTP API for the Offboarding Engine."""
