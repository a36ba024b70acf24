"""
Remote plugin signer.

Signing is delegated to an external plugin (MetaMask-Snap style) that keeps
its own encrypted keystore. The plugin is reached through a PluginRuntime,
which only needs to forward wallet_* requests.
"""
import itertools
import logging
from typing import Any, Dict, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .. import hexcodec
from ..exceptions import InvalidSignatureLength, MalformedHex, RemoteSignerError
from ..models import PluginInfo
from ..userop import SignerType
from .base import SignerBackend, require_hash_length

logger = logging.getLogger(__name__)

DEFAULT_SNAP_ID = "local:http://localhost:8080"


class PluginRuntime(Protocol):
    """The host's inter-process call mechanism (e.g. window.ethereum.request)."""

    def request(self, method: str, params: Any = None) -> Any:
        ...


class JsonRpcPluginRuntime:
    """
    PluginRuntime that forwards wallet_* calls as JSON-RPC 2.0 over HTTP to a
    wallet bridge.
    """

    def __init__(
        self,
        url: str,
        timeout: int = 30,
        retry_count: int = 3,
        logger: Optional[logging.Logger] = None
    ):
        self.url = url
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

        self.session = requests.Session()
        # Only connection failures are retried: a repeated sign request would
        # prompt the user a second time
        retries = Retry(total=retry_count, connect=retry_count, read=0, status=0, other=0, backoff_factor=0.5)
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def request(self, method: str, params: Any = None) -> Any:
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = params
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise RemoteSignerError(f"Plugin runtime request failed: {e}") from e
        except ValueError as e:
            raise RemoteSignerError(f"Plugin runtime returned invalid JSON: {e}") from e

        if not isinstance(body, dict):
            raise RemoteSignerError(f"Plugin runtime returned unexpected payload: {body!r}")
        if body.get("error"):
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise RemoteSignerError(message)
        return body.get("result")


class RemotePluginSigner(SignerBackend):
    """Signer backed by a remote signing plugin."""

    label = "snap"
    signer_type = SignerType.MODULE

    def __init__(
        self,
        runtime: PluginRuntime,
        snap_id: str = DEFAULT_SNAP_ID,
        chain_id: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.runtime = runtime
        self.snap_id = snap_id
        self.chain_id = chain_id
        self.logger = logger or logging.getLogger(__name__)

    def _call(self, method: str, params: Any = None) -> Any:
        try:
            return self.runtime.request(method, params)
        except RemoteSignerError:
            raise
        except Exception as e:
            raise RemoteSignerError(f"{method} failed: {e}") from e

    def _invoke(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        request: Dict[str, Any] = {"method": method}
        if params is not None:
            request["params"] = params
        return self._call("wallet_invokeSnap", {"snapId": self.snap_id, "request": request})

    def connect(self) -> None:
        """Request the plugin from the runtime. Safe to call when already connected."""
        if self.is_connected():
            self.logger.debug(f"Plugin {self.snap_id} already connected")
            return
        self._call("wallet_requestSnaps", {self.snap_id: {}})
        self.logger.info(f"Connected to plugin {self.snap_id}")

    def is_connected(self) -> bool:
        """
        Ask the runtime whether the plugin is installed.

        Always queries the runtime since permission can be revoked externally.
        Transport failures report False.
        """
        try:
            snaps = self._call("wallet_getSnaps")
        except RemoteSignerError as e:
            self.logger.debug(f"wallet_getSnaps failed: {e}")
            return False
        return isinstance(snaps, dict) and self.snap_id in snaps

    def is_ready(self) -> bool:
        return self.is_connected()

    def get_public_key(self, create: bool = True) -> bytes:
        result = self._invoke("pq_getPublicKey", {"create": create})
        if not isinstance(result, dict) or not result.get("publicKey"):
            raise RemoteSignerError("Plugin returned no public key")
        return self._decode_field(result["publicKey"], "publicKey")

    def get_info(self) -> PluginInfo:
        """Diagnostic status: key presence, level and signature counter."""
        result = self._invoke("pq_getInfo")
        if not isinstance(result, dict):
            raise RemoteSignerError(f"Unexpected pq_getInfo result: {result!r}")
        return PluginInfo.model_validate(result)

    def sign(self, message_hash: bytes) -> bytes:
        message_hash = require_hash_length(message_hash)
        params: Dict[str, Any] = {"userOpHash": hexcodec.encode(message_hash)}
        if isinstance(self.chain_id, int) and not isinstance(self.chain_id, bool) and self.chain_id > 0:
            params["chainId"] = self.chain_id

        result = self._invoke("pq_signUserOp", params)
        if not isinstance(result, dict) or not isinstance(result.get("signature"), str):
            raise RemoteSignerError("Plugin returned no signature")

        raw = result["signature"]
        digits = raw[2:] if raw[:2] in ("0x", "0X") else raw
        if len(digits) % 2 != 0:
            raise InvalidSignatureLength(f"Plugin signature has odd hex length ({len(digits)} digits)")
        signature = self._decode_field(raw, "signature")
        if not signature:
            raise RemoteSignerError("Plugin returned an empty signature")
        self.logger.debug(f"Plugin signed {hexcodec.encode(message_hash)} ({len(signature)} bytes)")
        return signature

    @staticmethod
    def _decode_field(value: Any, name: str) -> bytes:
        try:
            return hexcodec.decode(value)
        except MalformedHex as e:
            raise RemoteSignerError(f"Plugin returned malformed {name}: {e}") from e
