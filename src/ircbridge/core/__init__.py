"""Core: domain errors and protocol constants."""
