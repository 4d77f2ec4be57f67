"""HTTP API for tasks."""
