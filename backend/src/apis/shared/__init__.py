"""Code shared by the task API and the queue workers."""
