"""Cluster operations: wire names, argument checks, policy, backends and dispatch."""
