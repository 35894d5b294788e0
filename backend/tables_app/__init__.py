"""Times tables practice backend."""
