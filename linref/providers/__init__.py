"""Remote entity providers."""
