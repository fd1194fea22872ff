"""HTTP surface for canvas sessions."""
