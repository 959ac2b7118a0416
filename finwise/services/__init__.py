"""External service integrations (storage backends)."""
