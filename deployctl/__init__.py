"""deployctl — change-scoped deployments for compose and swarm targets."""

__version__ = "0.1.0"
