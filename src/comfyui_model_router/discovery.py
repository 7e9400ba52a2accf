"""
Inventory Discovery

Reads the list of model files the ComfyUI server can load. This is the fetch
function behind the validation cache; HTTP failures are raised as typed
transport errors so "the model is missing" never hides "the server is down".
"""

import logging
from typing import List, Optional, Tuple

from core.errors import classify_http_status

from .client import ComfyUIClient, get_client

logger = logging.getLogger("comfyui-model-router")

# (loader node, input name) pairs whose option lists make up the inventory
INVENTORY_SOURCES: List[Tuple[str, str]] = [
    ("CheckpointLoaderSimple", "ckpt_name"),
    ("UNETLoader", "unet_name"),
]


def list_loader_models(node_type: str, input_name: str, client: Optional[ComfyUIClient] = None) -> List[str]:
    """
    Model files offered by one loader node.

    Args:
        node_type: Loader node class, e.g. "CheckpointLoaderSimple".
        input_name: Input holding the file list, e.g. "ckpt_name".
        client: ComfyUI client (defaults to the global one).

    Returns:
        File names, or [] if the node info could not be parsed.

    Raises:
        TransportError: The server answered with an error or was unreachable.
    """
    client = client or get_client()
    result = client.get_object_info(node_type)

    if "error" in result:
        raise classify_http_status(
            result.get("status"),
            message=str(result["error"]),
            url=client.url_for(f"/object_info/{node_type}"),
        )

    try:
        return list(result[node_type]["input"]["required"][input_name][0])
    except (KeyError, IndexError, TypeError):
        logger.warning("Could not parse %s list from /object_info/%s", input_name, node_type)
        return []


def fetch_checkpoint_inventory(client: Optional[ComfyUIClient] = None) -> List[str]:
    """All loadable model files, de-duplicated in server order."""
    client = client or get_client()
    seen = set()
    inventory = []
    for node_type, input_name in INVENTORY_SOURCES:
        for file_name in list_loader_models(node_type, input_name, client):
            if file_name not in seen:
                seen.add(file_name)
                inventory.append(file_name)
    return inventory
