"""
Cerebras client.

Listed, configured and priced like the other providers, but the binding is
not implemented: every call fails with a ProviderException.
"""
from app.services.ai.base_client import PlaceholderProviderClient


class CerebrasClient(PlaceholderProviderClient):
    provider = "cerebras"
