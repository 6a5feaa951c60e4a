# shared/cosmos_client.py
import os
from functools import lru_cache
from azure.cosmos import CosmosClient

# Canonical env var names (legacy names from the first deployment still work)
COSMOS_URI_ENV = "COSMOS_URI"
COSMOS_KEY_ENV = "COSMOS_KEY"
LEGACY_URI_ENV = "cosmosDbEndpoint"
LEGACY_KEY_ENV = "cosmosDbKey"

class MissingCosmosConfig(Exception):
    pass

def resolve_credentials():
    uri = os.getenv(COSMOS_URI_ENV) or os.getenv(LEGACY_URI_ENV)
    key = os.getenv(COSMOS_KEY_ENV) or os.getenv(LEGACY_KEY_ENV)
    if not uri or not key:
        raise MissingCosmosConfig(
            f"Set {COSMOS_URI_ENV} and {COSMOS_KEY_ENV} in local.settings.json / Azure App Settings."
        )
    return uri, key

@lru_cache(maxsize=1)
def get_client() -> CosmosClient:
    uri, key = resolve_credentials()
    return CosmosClient(uri, credential=key)
