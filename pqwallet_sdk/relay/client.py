"""
RelayClient - JSON-RPC client for an ERC-4337 bundler.
"""
import itertools
import logging
import time
from typing import Any, Dict, List, Optional

import pydantic
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .._rate_limited_log import rate_limited_log
from ..config import require_secure_url
from ..exceptions import ReceiptTimeout, RelayConnectionError, RelayError, RelayRejected
from ..models import UserOperationReceipt
from ..userop import ENTRY_POINT_V07

logger = logging.getLogger(__name__)


class RelayClient:
    """
    Client for the bundler's user operation JSON-RPC methods.

    Submissions are never retried at the HTTP level once the request reached
    the bundler: resubmitting the same nonce would be rejected identically.
    Only connection establishment is retried.
    """

    def __init__(
        self,
        bundler_url: str,
        entry_point: str = ENTRY_POINT_V07,
        timeout: int = 30,
        retry_count: int = 3,
        poll_interval: float = 1.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the RelayClient

        Args:
            bundler_url: Bundler JSON-RPC endpoint
            entry_point: EntryPoint address sent with each submission
            timeout: Timeout for HTTP requests in seconds
            retry_count: Number of connection retries per request
            poll_interval: Seconds between receipt polls
            logger: Optional logger instance

        Raises:
            ValueError: If the URL doesn't use https (unless it's localhost/127.0.0.1)
        """
        require_secure_url("bundler_url", bundler_url)
        self.bundler_url = bundler_url
        self.entry_point = entry_point
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)
        self._ids = itertools.count(1)

        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            connect=retry_count,
            read=0,
            status=0,
            other=0,
            backoff_factor=0.5,
            allowed_methods=["POST"],
            raise_on_status=False
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def _rpc(self, method: str, params: List[Any]) -> Any:
        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        self.logger.debug(f"Relay request {request_id}: {method}")

        try:
            response = self.session.post(self.bundler_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RelayConnectionError(f"Relay unreachable ({method}): {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        # Some bundlers answer JSON-RPC errors with a 4xx/5xx status
        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            if isinstance(error, dict):
                raise RelayRejected(
                    str(error.get("message", "Unknown relay error")),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RelayRejected(str(error))

        if response.status_code >= 400:
            raise RelayConnectionError(f"Relay returned HTTP {response.status_code} for {method}")
        if not isinstance(body, dict) or "result" not in body:
            raise RelayError(f"Relay returned an invalid JSON-RPC response for {method}")
        return body["result"]

    def submit(self, relay_op: Dict[str, Any]) -> str:
        """
        Submit a signed operation in relay format.

        Returns:
            The user operation hash assigned by the relay

        Raises:
            RelayRejected: If the relay returns a structured error (message kept verbatim)
            RelayConnectionError: If the relay cannot be reached
        """
        result = self._rpc("eth_sendUserOperation", [relay_op, self.entry_point])
        if not isinstance(result, str):
            raise RelayError(f"Relay returned a non-string operation hash: {result!r}")
        self.logger.info(f"Relay accepted user operation {result}")
        return result

    def get_receipt(self, user_op_hash: str) -> Optional[UserOperationReceipt]:
        """Return the receipt, or None while the operation is pending."""
        result = self._rpc("eth_getUserOperationReceipt", [user_op_hash])
        if result is None:
            return None
        try:
            return UserOperationReceipt.model_validate(result)
        except pydantic.ValidationError as e:
            raise RelayError(f"Relay returned a malformed receipt: {e}") from e

    def await_receipt(self, user_op_hash: str, timeout: float = 30) -> UserOperationReceipt:
        """
        Poll for a receipt every poll_interval seconds.

        Connection failures while polling are logged and polling continues.

        Raises:
            ReceiptTimeout: If no receipt arrived within `timeout` seconds
            RelayRejected: If the relay answers a poll with a structured error
        """
        deadline = time.monotonic() + timeout
        attempts = 0
        while True:
            attempts += 1
            try:
                receipt = self.get_receipt(user_op_hash)
            except RelayConnectionError as e:
                rate_limited_log(f"Receipt poll failed for {user_op_hash}: {e}", logger_instance=self.logger)
                receipt = None
            if receipt is not None:
                self.logger.info(f"User operation {user_op_hash} included in {receipt.transaction_hash}")
                return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReceiptTimeout(
                    f"No receipt for {user_op_hash} after {timeout}s ({attempts} polls); outcome unknown",
                    user_op_hash=user_op_hash,
                )
            time.sleep(min(self.poll_interval, remaining))

    def supported_entry_points(self) -> List[str]:
        result = self._rpc("eth_supportedEntryPoints", [])
        if not isinstance(result, list):
            raise RelayError(f"Unexpected eth_supportedEntryPoints result: {result!r}")
        return result
