"""Remote proof service backend."""
