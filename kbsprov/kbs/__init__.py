"""Key Broker Service fixture.

- keys: admin keypair and sample secret provisioning
- overlays: overlay selection, token substitution and overlay variants
- staging: IBM SE credential staging on a worker node
- client: kbs-client wrapper for policies and resources
- service: the KeyBrokerService orchestration object
"""
