"""UDP token-authentication client and a framed, acknowledged link layer over TCP."""

__version__ = "0.1.0"