"""HTTP API layer for stockbatch."""
