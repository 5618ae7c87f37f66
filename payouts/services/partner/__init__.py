"""Partner program services."""
