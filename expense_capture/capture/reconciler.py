"""
Capture Channel Reconciler

Resolves the race between the three capture channels into exactly one
outcome for a CaptureSession.

FLOW:
1. Probe every channel, in priority order, right after mount
2. Nothing there -> re-probe on the configured schedule
3. Shared image but no OCR result -> wait, re-check the OCR slot once
4. Still nothing at the hard timeout -> timed_out, call on_exit
5. Something there -> decision tree in CaptureSession.apply_envelope

DESIGN DECISION: One prober walks the channels in priority order and
drains ALL of them on every probe. When two channels are populated at
once the higher-priority one wins and the other is discarded, so at
most one result is ever applied per session.

The schedule is a tenacity retry loop: a probe that finds nothing
returns None, and `retry_if_result` sleeps until the next offset.
"""

import asyncio
import inspect
from typing import Any, Callable, Optional, Union

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_result,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from expense_capture.audit import AuditLogger
from expense_capture.capture.channels import (
    CaptureChannel,
    CaptureChannels,
    MalformedChannelPayloadError,
)
from expense_capture.capture.session import CaptureSession
from expense_capture.config import CaptureSettings, get_settings
from expense_capture.models.audit import AuditEventBuilder
from expense_capture.models.expense import CaptureEnvelope, SharedImageRef

logger = structlog.get_logger(__name__)

ChannelPayload = Union[CaptureEnvelope, SharedImageRef]


class CaptureChannelReconciler:
    """
    Drives one CaptureSession from processing to a resolved status.

    Usage:
        reconciler = CaptureChannelReconciler(channels, on_exit=go_back)
        session = await reconciler.run()

    Call `await reconciler.cancel()` when the screen goes away.
    """

    def __init__(
        self,
        channels: CaptureChannels,
        settings: Optional[CaptureSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        on_exit: Optional[Callable[[], Any]] = None,
        session: Optional[CaptureSession] = None,
    ):
        self._channels = channels
        self._settings = settings or get_settings().capture
        self._audit = audit_logger or AuditLogger()
        self._on_exit = on_exit
        self.session = session or CaptureSession()

        self._task: Optional[asyncio.Task] = None
        self._cancel_requested = False

    async def run(self) -> CaptureSession:
        """
        Reconcile until the session resolves, times out or is cancelled.

        Returns the session in every case except outside cancellation of
        the calling task, which clears the channels and propagates.
        """
        await self._audit.log(
            AuditEventBuilder.capture_started(self.session.correlation_id)
        )

        self._task = asyncio.ensure_future(self._reconcile())
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancel_requested:
                self._channels.clear_all()
                self.session.mark_cancelled()
                raise

        return self.session

    async def cancel(self) -> None:
        """Stop probing, wipe every channel, mark the session cancelled."""
        self._cancel_requested = True

        try:
            # on_exit may unmount the screen from inside the reconcile task
            running = self._task is not None and not self._task.done()
            if running and asyncio.current_task() is not self._task:
                self._task.cancel()
                await asyncio.wait([self._task])
        finally:
            self._channels.clear_all()
            self.session.mark_cancelled()

        await self._audit.log(
            AuditEventBuilder.capture_cancelled(
                self.session.status.value,
                self.session.correlation_id,
            )
        )

    def _build_retrying(self) -> AsyncRetrying:
        offsets = self._settings.probe_offsets
        gaps = [later - earlier for earlier, later in zip(offsets, offsets[1:])]
        return AsyncRetrying(
            retry=retry_if_result(lambda payload: payload is None),
            wait=wait_chain(*[wait_fixed(gap) for gap in gaps]),
            stop=stop_after_attempt(len(offsets)),
            retry_error_callback=lambda retry_state: None,
            reraise=True,
        )

    async def _reconcile(self) -> None:
        envelope = await self._build_retrying()(self._probe)

        if envelope is None:
            await self._time_out()
            return

        status = self.session.apply_envelope(envelope)
        await self._audit.log(
            AuditEventBuilder.capture_resolved(
                status.value,
                self.session.correlation_id,
                amount=self.session.amount,
                confidence=self.session.confidence,
            )
        )

    async def _time_out(self) -> None:
        self.session.mark_timed_out()
        await self._audit.log(
            AuditEventBuilder.capture_timed_out(
                self._settings.timeout_seconds,
                self.session.correlation_id,
            )
        )

        if self._on_exit is not None:
            outcome = self._on_exit()
            if inspect.isawaitable(outcome):
                await outcome

    async def _receive(self, channel: CaptureChannel) -> Optional[ChannelPayload]:
        """Read one channel; a malformed payload reads as an error envelope."""
        try:
            return channel.try_receive()
        except MalformedChannelPayloadError as e:
            await self._audit.log(
                AuditEventBuilder.channel_payload_malformed(
                    channel.name.value,
                    str(e),
                    self.session.correlation_id,
                )
            )
            return CaptureEnvelope.failure()

    async def _probe(self) -> Optional[CaptureEnvelope]:
        """
        One pass over every channel.

        Returns the envelope to apply, or None if every channel was empty.
        """
        received: list[tuple[CaptureChannel, ChannelPayload]] = []
        for channel in self._channels.in_priority_order():
            payload = await self._receive(channel)
            if payload is not None:
                received.append((channel, payload))

        if not received:
            return None

        winner, payload = received[0]
        discarded = [channel.name.value for channel, _ in received[1:]]
        await self._audit.log(
            AuditEventBuilder.channel_received(
                winner.name.value,
                type(payload).__name__,
                self.session.correlation_id,
                discarded=discarded,
            )
        )
        if discarded:
            logger.warning(
                "capture_channels_raced",
                winner=winner.name.value,
                discarded=discarded,
            )

        if isinstance(payload, SharedImageRef):
            return await self._await_shared_image_ocr()

        return payload

    async def _await_shared_image_ocr(self) -> CaptureEnvelope:
        """OCR for a shared image is still running upstream: give it one chance."""
        await self._audit.log(
            AuditEventBuilder.share_wait_started(
                self._settings.share_wait_seconds,
                self.session.correlation_id,
            )
        )
        await asyncio.sleep(self._settings.share_wait_seconds)

        envelope = await self._receive(self._channels.session_ocr)
        if envelope is None:
            return CaptureEnvelope.failure()
        return envelope
