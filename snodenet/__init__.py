"""snodenet: client and load tester for a swarm-replicated storage network."""

__version__ = "0.1.0"
