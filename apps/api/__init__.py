"""HTTP API for the price history crawler."""
