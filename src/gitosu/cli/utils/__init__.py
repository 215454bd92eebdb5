"""CLI utilities for gitosu."""
