"""
Runtime choice between signer backends.
"""
import logging
import threading
from typing import Dict, Optional

from ..exceptions import ConfigurationError
from ..userop import SignerType
from .base import SignerBackend

logger = logging.getLogger(__name__)


class SignerSelector(SignerBackend):
    """
    Holds named backends with exactly one active at a time.

    The selector is itself a backend, so the lifecycle can be built once and
    keep working across mode switches.
    """

    def __init__(self, backends: Dict[str, SignerBackend], active: Optional[str] = None):
        if not backends:
            raise ConfigurationError("At least one signer backend is required")
        self._backends = dict(backends)
        self._lock = threading.RLock()
        self._active = active or next(iter(self._backends))
        if self._active not in self._backends:
            raise ConfigurationError(f"Unknown signer mode: {self._active}")

    @property
    def mode(self) -> str:
        with self._lock:
            return self._active

    @property
    def active(self) -> SignerBackend:
        with self._lock:
            return self._backends[self._active]

    @property
    def label(self) -> str:  # type: ignore[override]
        return self.active.label

    @property
    def signer_type(self) -> SignerType:  # type: ignore[override]
        return self.active.signer_type

    def modes(self):
        return list(self._backends)

    def switch(self, mode: str) -> SignerBackend:
        """Make `mode` the active backend."""
        with self._lock:
            if mode not in self._backends:
                raise ConfigurationError(
                    f"Unknown signer mode: {mode} (available: {', '.join(self._backends)})"
                )
            self._active = mode
            backend = self._backends[mode]
        logger.info(f"Signer mode switched to {mode}")
        return backend

    def sign(self, message_hash: bytes) -> bytes:
        return self.active.sign(message_hash)

    def is_ready(self) -> bool:
        return self.active.is_ready()

    def get_public_key(self) -> bytes:
        return self.active.get_public_key()
