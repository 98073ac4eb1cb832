"""Rate limiting adapters."""
