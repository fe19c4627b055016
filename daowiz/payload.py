"""
Publishes Beacon DAO metadata to IPFS.

Each module is a pair of a JS loader and a WASM module. Both are added to IPFS
and linked from a per-module DAG node; the DAO metadata document then links
to every module node. CIDs are embedded in DAG-JSON as {"/": "<cid>"} maps.
"""

import os
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Union

from .aio import join_all
from .content_store import IpfsClient
from .errors import EncodingError, ReadError

logger = logging.getLogger(__name__)

Source = Union[bytes, str, os.PathLike]


@dataclass(frozen=True)
class ContentRef:
    """A CID accepted by the content store"""
    cid: str

    def to_link(self) -> Dict[str, str]:
        return {'/': self.cid}

    def __str__(self):
        return self.cid


@dataclass(frozen=True)
class ModulePayload:
    """
    One executable unit of a DAO.

    Args:
        loader: JS that loads the module, as bytes or a file path
        module: WASM payload of the module itself, as bytes or a file path
        name: Label used in logs
    """
    loader: Source
    module: Source
    name: str = ''

    def read(self):
        """Returns the (loader, module) bytes, reading files where needed"""
        return _read_source(self.loader), _read_source(self.module)


def _read_source(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    try:
        with open(source, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ReadError(f"could not read module file {source}", e) from e


def _check_text(field: str, value: Any) -> str:
    if isinstance(value, bytes):
        try:
            return value.decode('utf-8')
        except UnicodeDecodeError as e:
            raise EncodingError(f"{field} is not valid UTF-8", e) from e
    return str(value)


def module_node(loader: ContentRef, module: ContentRef) -> Dict[str, Any]:
    return {
        'loader': [loader.to_link()],
        'module': [module.to_link()],
    }


def idea_metadata(title: str, description: str, payload: Sequence[ContentRef]) -> Dict[str, Any]:
    return {
        'title': title,
        'description': description,
        'payload': [ref.to_link() for ref in payload],
    }


async def publish_module(store: IpfsClient, index: int, payload: ModulePayload) -> ContentRef:
    """Uploads one module's loader and WASM, then its metadata node."""
    loader_bytes, module_bytes = await asyncio.to_thread(payload.read)

    loader_ref = ContentRef(await asyncio.to_thread(store.add, loader_bytes))
    module_ref = ContentRef(await asyncio.to_thread(store.add, module_bytes))
    node_ref = ContentRef(await asyncio.to_thread(store.dag_put, module_node(loader_ref, module_ref)))

    logger.debug(f"Finished deploying module {index} {payload.name}".rstrip())
    return node_ref


async def publish_metadata(
    store: IpfsClient,
    title: str,
    description: str,
    modules: Sequence[ModulePayload],
) -> ContentRef:
    """
    Creates the DAO metadata document and returns its CID, the metadata root.

    Modules are uploaded concurrently. If any module fails the metadata
    document is never uploaded.
    """
    title = _check_text('title', title)
    description = _check_text('description', description)

    logger.debug(f"Publishing {len(modules)} modules to IPFS")
    payload = await join_all([publish_module(store, i, m) for i, m in enumerate(modules)])

    root = ContentRef(await asyncio.to_thread(store.dag_put, idea_metadata(title, description, payload)))
    logger.info(f"Deployed metadata at {root}")
    return root
