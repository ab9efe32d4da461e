"""Core value types, odds derivation, protocols, and configuration."""
