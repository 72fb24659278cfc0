"""Operational tooling for a Kubernetes-deployed Citus cluster."""

__version__ = "0.1.0"
