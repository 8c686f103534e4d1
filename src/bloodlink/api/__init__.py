"""API layer for BloodLink."""
