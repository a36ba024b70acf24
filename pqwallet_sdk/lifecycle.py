"""
OperationLifecycle - drives one approved intent through build, sign, submit
and confirm, and reports the terminal outcome to the requesting session.

    IDLE -> BUILDING -> SIGNING -> SUBMITTING -> WAITING -> CONFIRMED
      |         |          |            |            |
      +---------+----------+------------+------------+----> FAILED
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from . import hexcodec
from ._rate_limited_log import rate_limited_log
from .config import DEFAULT_CHAIN_ID
from .exceptions import (
    AuthorityError, InvalidTransition, PQWalletError, ReceiptTimeout, RejectionCode
)
from .models import Intent, UserOperationReceipt
from .signer.selector import SignerSelector
from .userop import ENTRY_POINT_V07

logger = logging.getLogger(__name__)

USER_REJECTED_MESSAGE = "User rejected the request"


class OperationStatus(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Stage(str, Enum):
    """Pipeline stage named in failure reports."""
    BUILD = "build"
    SIGN = "sign"
    SUBMIT = "submit"
    CONFIRM = "confirm"


_TRANSITIONS = {
    OperationStatus.IDLE: {OperationStatus.BUILDING, OperationStatus.FAILED},
    OperationStatus.BUILDING: {OperationStatus.SIGNING, OperationStatus.FAILED},
    OperationStatus.SIGNING: {OperationStatus.SUBMITTING, OperationStatus.FAILED},
    OperationStatus.SUBMITTING: {OperationStatus.WAITING, OperationStatus.FAILED},
    OperationStatus.WAITING: {OperationStatus.CONFIRMED, OperationStatus.FAILED},
    OperationStatus.CONFIRMED: set(),
    OperationStatus.FAILED: set(),
}


@dataclass
class PendingOperation:
    """State of one in-flight request; dropped once its outcome is reported."""
    request_id: Any
    intent: Optional[Intent]
    topic: Optional[str] = None
    status: OperationStatus = OperationStatus.IDLE
    user_op_hash: Optional[str] = None
    transaction_hash: Optional[str] = None
    receipt: Optional[UserOperationReceipt] = None
    last_error: Optional[str] = None
    failed_stage: Optional[Stage] = None
    rejection_code: Optional[RejectionCode] = None
    error: Optional[Exception] = field(default=None, repr=False)
    history: List[OperationStatus] = field(default_factory=lambda: [OperationStatus.IDLE])

    @property
    def is_terminal(self) -> bool:
        return self.status in (OperationStatus.CONFIRMED, OperationStatus.FAILED)

    def advance(self, status: OperationStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransition(f"Cannot move from {self.status.value} to {status.value}")
        self.status = status
        self.history.append(status)

    def error_payload(self) -> Optional[Dict[str, Any]]:
        """
        Structured rejection for a failed operation: {code, message, data}.

        The message is the underlying error message, unchanged.
        """
        if self.status is not OperationStatus.FAILED or self.rejection_code is None:
            return None
        data: Dict[str, Any] = {
            "stage": self.failed_stage.value if self.failed_stage else None,
            "reason": self.rejection_code.value,
        }
        if self.user_op_hash:
            data["userOpHash"] = self.user_op_hash
        return {
            "code": self.rejection_code.rpc_code,
            "message": self.last_error or self.rejection_code.value,
            "data": data,
        }


Reporter = Callable[[PendingOperation], None]


class OperationLifecycle:
    """
    Orchestrates OperationCodec -> SignerBackend -> RelayClient for one intent
    at a time.

    Every stage failure ends in FAILED with a rejection code and the original
    error message; the outcome is then handed to the reporter. A reporter
    that raises is logged and otherwise ignored.
    """

    def __init__(
        self,
        codec,
        signer,
        relay,
        *,
        account: str,
        entry_point: str = ENTRY_POINT_V07,
        chain_id: int = DEFAULT_CHAIN_ID,
        receipt_timeout: float = 30.0,
        reporter: Optional[Reporter] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.codec = codec
        self.signer = signer
        self.relay = relay
        self.account = account
        self.entry_point = entry_point
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.reporter = reporter
        self.logger = logger or logging.getLogger(__name__)

    def open(self, request_id: Any, intent: Optional[Intent], topic: Optional[str] = None) -> PendingOperation:
        """Create the IDLE record for an incoming intent."""
        return PendingOperation(request_id=request_id, intent=intent, topic=topic)

    def reject(
        self,
        pending: PendingOperation,
        code: RejectionCode = RejectionCode.USER_REJECTED,
        message: str = USER_REJECTED_MESSAGE
    ) -> PendingOperation:
        """
        Decline an intent before it enters the pipeline.

        No codec, signer or relay call is made.
        """
        if pending.status is not OperationStatus.IDLE:
            raise InvalidTransition(f"Only idle operations can be declined (status: {pending.status.value})")
        return self._fail(pending, None, code, message)

    def approve(self, pending: PendingOperation) -> PendingOperation:
        """
        Run the pipeline to a terminal state.

        Returns:
            The same record, now CONFIRMED or FAILED
        """
        if pending.status is not OperationStatus.IDLE:
            raise InvalidTransition(f"Only idle operations can be approved (status: {pending.status.value})")
        if pending.intent is None:
            return self._fail(pending, Stage.BUILD, RejectionCode.VALIDATION_ERROR, "Missing transaction intent")

        # One backend for the whole run so the nonce namespace matches the signature
        backend = self.signer.active if isinstance(self.signer, SignerSelector) else self.signer

        pending.advance(OperationStatus.BUILDING)
        try:
            unsigned, op_hash = self.codec.build_unsigned(
                pending.intent, self.account, self.entry_point, self.chain_id, backend.signer_type
            )
        except AuthorityError as e:
            return self._fail(pending, Stage.BUILD, RejectionCode.AUTHORITY_ERROR, e)
        except Exception as e:
            return self._fail(pending, Stage.BUILD, RejectionCode.VALIDATION_ERROR, e)
        pending.user_op_hash = hexcodec.encode(op_hash)

        pending.advance(OperationStatus.SIGNING)
        try:
            signature = backend.sign(op_hash)
            signed = self.codec.finalize(unsigned, signature)
        except Exception as e:
            return self._fail(pending, Stage.SIGN, RejectionCode.SIGNER_ERROR, e)
        self.logger.debug(f"Signature {hexcodec.encode(signature[:8])}... ({len(signature)} bytes)")

        pending.advance(OperationStatus.SUBMITTING)
        try:
            relay_hash = self.relay.submit(self.codec.to_relay_format(signed))
        except Exception as e:
            return self._fail(pending, Stage.SUBMIT, RejectionCode.RELAY_ERROR, e)
        if relay_hash.lower() != pending.user_op_hash:
            self.logger.warning(
                f"Relay hash {relay_hash} differs from local hash {pending.user_op_hash}; tracking the relay's"
            )
        pending.user_op_hash = relay_hash

        pending.advance(OperationStatus.WAITING)
        try:
            receipt = self.relay.await_receipt(relay_hash, self.receipt_timeout)
        except ReceiptTimeout as e:
            return self._fail(pending, Stage.CONFIRM, RejectionCode.TIMEOUT, e)
        except Exception as e:
            return self._fail(pending, Stage.CONFIRM, RejectionCode.RELAY_ERROR, e)

        pending.receipt = receipt
        pending.transaction_hash = receipt.transaction_hash
        if not receipt.success:
            self.logger.warning(f"User operation {relay_hash} was included but reverted: {receipt.reason}")
        pending.advance(OperationStatus.CONFIRMED)
        self.logger.info(f"Request {pending.request_id} confirmed in {receipt.transaction_hash}")
        self._report(pending)
        return pending

    def run(self, request_id: Any, intent: Intent, topic: Optional[str] = None) -> PendingOperation:
        """Open and immediately approve an intent."""
        return self.approve(self.open(request_id, intent, topic))

    def _fail(
        self,
        pending: PendingOperation,
        stage: Optional[Stage],
        code: RejectionCode,
        error: Any
    ) -> PendingOperation:
        pending.failed_stage = stage
        pending.rejection_code = code
        pending.last_error = str(error)
        if isinstance(error, Exception):
            pending.error = error
        pending.advance(OperationStatus.FAILED)

        where = stage.value if stage else "approval"
        if isinstance(error, Exception) and not isinstance(error, PQWalletError):
            self.logger.error(f"Request {pending.request_id} failed at {where}: {error}", exc_info=error)
        else:
            self.logger.warning(f"Request {pending.request_id} failed at {where} ({code.value}): {error}")
        self._report(pending)
        return pending

    def _report(self, pending: PendingOperation) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter(pending)
        except Exception as e:
            rate_limited_log(
                f"Could not report outcome of request {pending.request_id}: {e}",
                level="error",
                logger_instance=self.logger,
            )
