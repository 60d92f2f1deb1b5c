"""Upload and report services."""
