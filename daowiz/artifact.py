import os
import json
import logging
from dataclasses import dataclass
from typing import Any, List

from .errors import EncodingError, InvalidInputError, ReadError, SerializationError

logger = logging.getLogger(__name__)

# Location of the compiled Idea contract inside a Hardhat contracts dir
ARTIFACT_SUBPATH = os.path.join('contracts', 'Idea.sol', 'Idea.json')


@dataclass(frozen=True)
class DeployableArtifact:
    """Compiled contract: creation bytecode and ABI"""
    bytecode: str
    abi: List[Any]

    def creation_code(self) -> str:
        """Returns the bytecode without its 0x prefix"""
        if not self.bytecode.startswith('0x'):
            raise InvalidInputError("contract bytecode is missing the 0x prefix")
        return self.bytecode[2:]

    def creation_bytes(self) -> bytes:
        """Decodes the creation bytecode into raw bytes"""
        try:
            return bytes.fromhex(self.creation_code())
        except ValueError as e:
            raise EncodingError("contract bytecode is not valid hex", e) from e


def artifact_path(contracts_dir: str) -> str:
    return os.path.join(contracts_dir, ARTIFACT_SUBPATH)


def load_artifact(contracts_dir: str) -> DeployableArtifact:
    """Loads the Idea.sol artifact from the specified contracts dir."""
    path = artifact_path(contracts_dir)
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except OSError as e:
        raise ReadError(f"could not read contract artifact {path}", e) from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SerializationError(f"contract artifact {path} is not valid JSON", e) from e

    if not isinstance(data, dict) or not isinstance(data.get('bytecode'), str) or 'abi' not in data:
        raise SerializationError(f"contract artifact {path} needs a bytecode string and an abi")

    logger.debug(f"Loaded contract artifact from {path}")
    return DeployableArtifact(bytecode=data['bytecode'], abi=data['abi'])
