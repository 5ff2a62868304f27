"""FastAPI surface for the adaptive assessment engine."""
