"""External services (storage backends)."""
