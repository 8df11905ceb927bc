"""External collaborators: embedding services and platform authenticators."""
