"""StateStore: Load and save contract state between runs.

State is a plain dictionary of ints, strings, bools, lists and dicts (see
:meth:`IndexOracleContract.to_state`). :class:`CborStateStore` encodes it
with CBOR so that 256-bit integers survive unchanged.
"""

from __future__ import annotations

import copy
import logging
import os
import tempfile
from abc import ABC, abstractmethod

import cbor2

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Persistence capability injected into the contract."""

    @abstractmethod
    def load(self) -> dict | None:
        """Return the saved state, or None if nothing was saved yet."""
        pass

    @abstractmethod
    def save(self, state: dict) -> None:
        """Persist ``state``, replacing whatever was saved before."""
        pass


class MemoryStateStore(StateStore):
    """Keeps a private copy of the state in memory."""

    def __init__(self) -> None:
        self._state: dict | None = None

    def load(self) -> dict | None:
        return copy.deepcopy(self._state)

    def save(self, state: dict) -> None:
        self._state = copy.deepcopy(state)


class CborStateStore(StateStore):
    """Stores the state as a CBOR file.

    Writes go to a temporary file in the same directory which then replaces
    the state file, so a crash never leaves a half written file behind.

    :ivar path: Location of the state file.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> dict | None:
        """Read the state file.

        :returns: Decoded state, or None if the file does not exist.
        :raises ValueError: If the file is not a CBOR encoded mapping.
        """
        try:
            with open(self.path, "rb") as f:
                state = cbor2.load(f)
        except FileNotFoundError:
            return None
        except cbor2.CBORDecodeError as e:
            raise ValueError(f"Corrupt state file {self.path}: {e}") from e

        if not isinstance(state, dict):
            raise ValueError(f"Corrupt state file {self.path}: expected a mapping")
        return state

    def save(self, state: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".cbor")
        try:
            with os.fdopen(fd, "wb") as f:
                cbor2.dump(state, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Saved state to {self.path}")
