"""Forum backend: accounts, sessions and federated login."""

__version__ = "0.1.0"
