"""User-facing interfaces for Neural Vault."""
