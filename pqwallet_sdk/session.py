"""
Message-passing boundary between a wallet session layer and the lifecycle.

The session layer pushes SessionRequest messages onto `requests` and drains
SessionResponse messages from `responses`. A worker thread consumes one
request at a time so the host thread never waits on signing or polling.
"""
import logging
import queue
import threading
from typing import Any, Callable, Dict, List, Optional, Union

import pydantic
from pydantic import BaseModel

from .exceptions import RejectionCode
from .lifecycle import OperationLifecycle, PendingOperation
from .models import Intent

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("eth_sendTransaction",)
INTERNAL_ERROR_CODE = -32603

Approver = Callable[["SessionRequest", Intent], bool]


class SessionRequest(BaseModel):
    """A request delivered by the session layer."""
    id: Union[int, str]
    method: str
    params: Any = None
    topic: Optional[str] = None


class SessionError(BaseModel):
    code: int
    message: str
    data: Optional[Dict[str, Any]] = None


class SessionResponse(BaseModel):
    """Reply addressed to the request id: either a result or an error."""
    id: Union[int, str]
    topic: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[SessionError] = None

    @classmethod
    def from_pending(cls, pending: PendingOperation) -> "SessionResponse":
        error = pending.error_payload()
        if error is not None:
            return cls(id=pending.request_id, topic=pending.topic, error=SessionError(**error))
        return cls(id=pending.request_id, topic=pending.topic, result=pending.transaction_hash)


def _transaction_params(params: Any) -> Dict[str, Any]:
    if isinstance(params, list):
        params = params[0] if params else None
    if not isinstance(params, dict):
        raise ValueError("eth_sendTransaction expects a transaction object")
    return params


class SessionBridge:
    """
    Feeds session requests to an OperationLifecycle and publishes outcomes.

    The bridge installs itself as the lifecycle's reporter. `approver` is
    asked once per transaction and decides between approve and decline;
    without one every transaction is approved.
    """

    _STOP = object()

    def __init__(
        self,
        lifecycle: OperationLifecycle,
        approver: Optional[Approver] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.lifecycle = lifecycle
        self.approver = approver
        self.logger = logger or logging.getLogger(__name__)
        self.requests: "queue.Queue[Any]" = queue.Queue()
        self.responses: "queue.Queue[SessionResponse]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        lifecycle.reporter = self._publish

    def _publish(self, pending: PendingOperation) -> None:
        self.responses.put(SessionResponse.from_pending(pending))

    def _reply_error(self, request: SessionRequest, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        self.responses.put(SessionResponse(
            id=request.id,
            topic=request.topic,
            error=SessionError(code=code, message=message, data=data),
        ))

    def submit(self, request: Union[SessionRequest, Dict[str, Any]]) -> None:
        """Queue a request for the worker."""
        if not isinstance(request, SessionRequest):
            request = SessionRequest.model_validate(request)
        self.requests.put(request)

    def handle(self, request: SessionRequest) -> Optional[PendingOperation]:
        """
        Handle one request synchronously; the outcome lands on `responses`.

        Returns:
            The terminal PendingOperation, or None for unsupported methods
        """
        if request.method not in SUPPORTED_METHODS:
            self.logger.info(f"Rejecting unsupported session method {request.method}")
            code = RejectionCode.UNSUPPORTED_METHOD
            self._reply_error(
                request, code.rpc_code, f"Unsupported method: {request.method}",
                {"stage": None, "reason": code.value},
            )
            return None

        try:
            intent = Intent.from_transaction(_transaction_params(request.params))
        except (pydantic.ValidationError, ValueError) as e:
            pending = self.lifecycle.open(request.id, None, request.topic)
            return self.lifecycle.reject(pending, RejectionCode.VALIDATION_ERROR, f"Invalid transaction: {e}")

        pending = self.lifecycle.open(request.id, intent, request.topic)
        if self._approved(request, intent):
            return self.lifecycle.approve(pending)
        return self.lifecycle.reject(pending)

    def _approved(self, request: SessionRequest, intent: Intent) -> bool:
        if self.approver is None:
            return True
        try:
            return bool(self.approver(request, intent))
        except Exception as e:
            self.logger.error(f"Approval prompt failed for request {request.id}, declining: {e}")
            return False

    def process_next(self, timeout: Optional[float] = None) -> bool:
        """
        Handle the next queued request.

        Returns:
            False if no request arrived within `timeout` or the bridge was stopped
        """
        try:
            request = self.requests.get(timeout=timeout) if timeout is not None else self.requests.get_nowait()
        except queue.Empty:
            return False
        return self._dispatch(request)

    def _dispatch(self, request: Any) -> bool:
        try:
            if request is self._STOP:
                return False
            try:
                self.handle(request)
            except Exception as e:
                self.logger.exception(f"Unexpected error handling request {request.id}")
                self._reply_error(request, INTERNAL_ERROR_CODE, f"Internal error: {e}")
            return True
        finally:
            self.requests.task_done()

    def drain(self) -> List[SessionResponse]:
        """Return every response published so far."""
        drained = []
        while True:
            try:
                drained.append(self.responses.get_nowait())
            except queue.Empty:
                return drained

    def start(self) -> None:
        """Start the worker thread."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="pqwallet-session", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        while self._dispatch(self.requests.get()):
            pass

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the worker after the requests already queued are handled."""
        if self._worker is None:
            return
        self.requests.put(self._STOP)
        self._worker.join(timeout)
        self._worker = None
