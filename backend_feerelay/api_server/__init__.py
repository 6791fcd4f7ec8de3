"""
API server package — HTTP interface to the sponsor pipeline.

Handles CORS and rate limiting before delegating to the pipeline.
"""
