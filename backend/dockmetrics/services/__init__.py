"""Collection, storage and control services."""
