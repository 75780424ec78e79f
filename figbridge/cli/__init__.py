"""CLI module for figbridge."""
