"""Service layer for the rockets telemetry backend."""
