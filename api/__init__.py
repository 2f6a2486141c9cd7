"""
HTTP API for Chirper.

Run with:
    uv run uvicorn api.main:app --reload
"""
