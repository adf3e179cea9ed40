"""Two-party conversation service with realtime delivery."""
