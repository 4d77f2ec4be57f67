"""Task pipeline APIs and workers."""
