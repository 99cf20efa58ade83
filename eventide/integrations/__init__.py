"""Storage backends for eventide."""
