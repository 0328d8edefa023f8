"""Authentication: session tokens, request gates and OAuth login."""
