"""
Serving — FastAPI application exposing ingestion and search over HTTP.

The web tier of the study assistant calls these endpoints after a
document upload and when a student queries their material.
"""
