"""Generic metadata repository over an external asset catalog.

Translates generic entity, relationship and classification requests into
catalog searches and object fetches, and catalog objects back into generic
instances.

Usage:
    python -m catalog_bridge --config connector.yaml find Asset --property name=.*cust.*
"""

from catalog_bridge.lib.collection import MetadataCollection
from catalog_bridge.lib.config_loader import build_metadata_collection, load_connector_config
from catalog_bridge.lib.errors import BridgeError

__version__ = "0.1.0"

__all__ = [
    "MetadataCollection",
    "BridgeError",
    "build_metadata_collection",
    "load_connector_config",
]
