"""FastAPI application exposing the progress engine over HTTP."""
