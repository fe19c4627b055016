"""
Minimal client for the IPFS HTTP RPC API.

Only the two calls needed to publish DAO metadata are implemented: `add` for
raw bytes and `dag/put` for JSON documents that link to other content.
"""

import json
import logging
from typing import Any, Dict

import requests

from .errors import EncodingError, NetworkError, SerializationError

logger = logging.getLogger(__name__)

DEFAULT_IPFS_URI = "http://127.0.0.1:5001/"


def encode_document(document: Dict[str, Any]) -> bytes:
    """Serializes a DAG-JSON document with a stable key order."""
    try:
        text = json.dumps(document, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError("could not serialize DAG document", e) from e

    try:
        return text.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError("DAG document contains text that is not valid UTF-8", e) from e


class IpfsClient:
    def __init__(self, base_url: str = DEFAULT_IPFS_URI, timeout: float = 30):
        self.api_url = base_url.rstrip('/') + '/api/v0'
        self.timeout = timeout

    def _post(self, endpoint: str, params: Dict[str, str], payload: bytes) -> Dict[str, Any]:
        url = f"{self.api_url}/{endpoint}"
        try:
            response = requests.post(url, params=params, files={'file': payload}, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"IPFS request to {endpoint} failed", e) from e

        try:
            return response.json()
        except ValueError as e:
            raise SerializationError(f"IPFS returned a malformed {endpoint} response", e) from e

    def add(self, data: bytes) -> str:
        """Uploads raw bytes, returning their CID"""
        result = self._post('add', {'pin': 'true'}, data)
        try:
            cid = result['Hash']
        except (KeyError, TypeError) as e:
            raise SerializationError("IPFS add response has no Hash", e) from e

        logger.debug(f"Added {len(data)} bytes to IPFS as {cid}")
        return cid

    def dag_put(self, document: Dict[str, Any]) -> str:
        """Stores a DAG-JSON document, returning the CID of the node"""
        params = {'store-codec': 'dag-cbor', 'input-codec': 'dag-json', 'pin': 'true'}
        result = self._post('dag/put', params, encode_document(document))
        try:
            cid = result['Cid']['/']
        except (KeyError, TypeError) as e:
            raise SerializationError("IPFS dag/put response has no Cid", e) from e

        logger.debug(f"Stored DAG node {cid}")
        return cid
