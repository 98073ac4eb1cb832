"""HTTP and WebSocket interface for the vote pipeline (FastAPI)."""
