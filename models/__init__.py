"""Wire and settings schemas for upstream payloads."""
