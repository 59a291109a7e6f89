"""HTTP routes for the crawler service."""
