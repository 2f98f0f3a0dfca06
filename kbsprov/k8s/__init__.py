"""Kubernetes (K8s) adapter for KBSProv.

This module provides the cluster-facing pieces of the provisioner:
- Cluster: kubeconfig path plus lazily-built API clients
- KustomizeOverlay: apply/delete/edit of kustomize directories
- Endpoint resolution: deployment wait, NodePort and node IP lookup
"""
