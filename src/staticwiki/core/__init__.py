"""Core wiki logic, independent of the web layer."""
