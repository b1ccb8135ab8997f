"""HTTP API for recorded sector passes."""
