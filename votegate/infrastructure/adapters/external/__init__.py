"""Adapters for external HTTP services (GitHub, hCaptcha)."""
