"""Chat command parsing, dispatch and the Redis hub relay."""
