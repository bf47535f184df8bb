"""Core types shared across the bridge: errors and protocol constants."""
