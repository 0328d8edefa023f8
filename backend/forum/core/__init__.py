"""Core services: hashing, presence, persistence, mail, logging."""
