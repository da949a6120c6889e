"""found.as client: password-derived signing identities and path synchronization."""
