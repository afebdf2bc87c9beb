"""FastAPI service exposing integration management and webhook endpoints."""
