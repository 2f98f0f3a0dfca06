"""
KBSProv: Key Broker Service test fixture provisioning

Provisions and tears down a Key Broker Service (KBS) inside a Kubernetes
cluster for confidential-computing end-to-end tests. Generates the admin
keypair, writes a sample secret, applies the kustomize overlay, resolves the
service endpoint and registers policies through the external kbs-client.
"""

__version__ = "1.0.0"

from kbsprov.kbs.service import KeyBrokerService

__all__ = ["__version__", "KeyBrokerService"]
