"""CLI module for contextprune."""
