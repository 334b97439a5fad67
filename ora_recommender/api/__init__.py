"""
HTTP API (FastAPI): callable and plain regenerate endpoints plus read routes.

Build the app with ``create_app(config)``; ``ora-recs serve`` runs it
under uvicorn.
"""
