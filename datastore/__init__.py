#Marks datastore as a package.
#Re-exports the REST client and the collaborator gateway.
#No business logic.

from .client import DataStoreClient, DataStoreError
from .gateway import DataStoreGateway

__all__ = [
    "DataStoreClient",
    "DataStoreError",
    "DataStoreGateway",
]
