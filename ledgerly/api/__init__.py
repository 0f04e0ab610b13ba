"""HTTP API for Ledgerly (FastAPI)."""
