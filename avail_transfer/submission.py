"""
Submission Tracker

Turns the stream of status notifications for one extrinsic into a single
terminal outcome:

    PENDING -> INCLUDED -> FINALIZED_SUCCESS | FINALIZED_FAILURE
    PENDING | INCLUDED -> REJECTED   (dropped / invalid / usurped)

The outcome future is assigned once; later notifications are ignored.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from .chain_connector import ExtrinsicStatus, StatusUpdate
from .errors import SubmissionError, SubmissionTimeoutError


class SubmissionState(Enum):
    PENDING = 'pending'
    INCLUDED = 'included'
    FINALIZED_SUCCESS = 'finalized_success'
    FINALIZED_FAILURE = 'finalized_failure'
    REJECTED = 'rejected'

    @property
    def is_terminal(self) -> bool:
        return self not in (SubmissionState.PENDING, SubmissionState.INCLUDED)


ALLOWED_TRANSITIONS = {
    SubmissionState.PENDING: {
        SubmissionState.INCLUDED,
        SubmissionState.FINALIZED_SUCCESS,
        SubmissionState.FINALIZED_FAILURE,
        SubmissionState.REJECTED,
    },
    # INCLUDED -> INCLUDED covers re-inclusion after a retracted block
    SubmissionState.INCLUDED: {
        SubmissionState.INCLUDED,
        SubmissionState.FINALIZED_SUCCESS,
        SubmissionState.FINALIZED_FAILURE,
        SubmissionState.REJECTED,
    },
    SubmissionState.FINALIZED_SUCCESS: set(),
    SubmissionState.FINALIZED_FAILURE: set(),
    SubmissionState.REJECTED: set(),
}


@dataclass(frozen=True)
class SubmissionOutcome:
    """Terminal result of one submission"""
    state: SubmissionState
    extrinsic_hash: Optional[str]
    block_hash: Optional[str] = None
    error: Optional[SubmissionError] = None

    @property
    def success(self) -> bool:
        return self.state is SubmissionState.FINALIZED_SUCCESS


class SubmissionTracker:
    """Follows one extrinsic from submission to its first terminal status"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.state = SubmissionState.PENDING
        self.extrinsic_hash: Optional[str] = None
        self.included_in: Optional[str] = None
        self._outcome: asyncio.Future = (loop or asyncio.get_running_loop()).create_future()

    @property
    def done(self) -> bool:
        return self._outcome.done()

    def on_status(self, update: StatusUpdate) -> None:
        """Status callback handed to the connector"""
        if self._outcome.done():
            logger.debug(f"Ignoring {update.status.value} after {self.state.value}")
            return

        self.extrinsic_hash = update.extrinsic_hash
        status = update.status

        if status is ExtrinsicStatus.IN_BLOCK:
            self._transition(SubmissionState.INCLUDED)
            self.included_in = update.block_hash
            logger.info(f"📦 Transaction included in block: {update.block_hash}")

        elif status is ExtrinsicStatus.FINALIZED:
            logger.info(f"✅ Transaction finalized in block: {update.block_hash}")
            if update.dispatch_error is not None:
                message = update.dispatch_error.message
                logger.error(f"❌ Transaction failed: {message}")
                self._resolve(
                    SubmissionState.FINALIZED_FAILURE,
                    update.block_hash,
                    SubmissionError(message, status=status.value)
                )
            else:
                self._resolve(SubmissionState.FINALIZED_SUCCESS, update.block_hash)

        elif status.is_rejection:
            message = f"Transaction failed with status: {status.value}"
            logger.error(f"❌ {message}")
            self._resolve(
                SubmissionState.REJECTED,
                update.block_hash,
                SubmissionError(message, status=status.value)
            )

        else:
            logger.debug(f"Transaction status: {status.value}")

    def fail(self, error: SubmissionError) -> None:
        """Reject from outside the status stream (e.g. RPC refusal)"""
        if self._outcome.done():
            return
        logger.error(f"❌ {error}")
        self._resolve(SubmissionState.REJECTED, None, error)

    def watch_finished(self, task: asyncio.Future) -> None:
        """Done-callback for the connector's submit_and_watch task"""
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            if not isinstance(error, SubmissionError):
                error = SubmissionError(f"Transaction submission error: {error}")
            self.fail(error)
            return

        if self.extrinsic_hash is None:
            self.extrinsic_hash = task.result()
        if not self._outcome.done():
            self.fail(SubmissionError(
                f"Status subscription ended before finalization (last state: {self.state.value})"
            ))

    async def wait(self, timeout: Optional[float] = None) -> SubmissionOutcome:
        """
        Wait for the terminal outcome

        Raises:
            SubmissionTimeoutError: nothing terminal within timeout seconds
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._outcome), timeout)
        except asyncio.TimeoutError as e:
            raise SubmissionTimeoutError(
                f"Transaction not finalized within {timeout}s (last state: {self.state.value})"
            ) from e

    def _transition(self, new_state: SubmissionState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid submission transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _resolve(
        self,
        state: SubmissionState,
        block_hash: Optional[str],
        error: Optional[SubmissionError] = None
    ) -> None:
        self._transition(state)
        self._outcome.set_result(SubmissionOutcome(
            state=state,
            extrinsic_hash=self.extrinsic_hash,
            block_hash=block_hash,
            error=error,
        ))
