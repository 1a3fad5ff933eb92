"""Mock webhook server that records request arrivals and reports TPS."""

__version__ = "0.1.0"
