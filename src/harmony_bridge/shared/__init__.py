"""Infrastructure shared by the bridge services."""
