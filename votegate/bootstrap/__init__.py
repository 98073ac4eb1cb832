"""Bootstrap wiring for process-wide singletons (database, metrics)."""
