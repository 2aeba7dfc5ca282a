"""
Tests for the capture channel reconciler.

Timings come from the scaled-down `fast_capture_settings` fixture:
probes at 0, 20, 40, 60 ms, hard timeout at 150 ms, share wait 50 ms.
"""

import asyncio
import math

import pytest

from expense_capture.audit import AuditLogger
from expense_capture.capture import (
    OCR_DATA_KEY,
    CaptureChannelReconciler,
    CaptureChannels,
    SessionStore,
)
from expense_capture.models.audit import AuditEventType
from expense_capture.models.expense import (
    CaptureEnvelope,
    CaptureStatus,
    ExtractionResult,
    SharedImageRef,
)


class RecordingAuditLogger(AuditLogger):
    """Keeps every event in memory for assertions."""

    def __init__(self):
        super().__init__()
        self.events = []

    async def log(self, event):
        self.events.append(event)
        return True

    def of_type(self, event_type):
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def channels():
    return CaptureChannels(SessionStore())


@pytest.fixture
def audit_logger():
    return RecordingAuditLogger()


@pytest.fixture
def make_reconciler(channels, fast_capture_settings, audit_logger):
    def _make(on_exit=None):
        return CaptureChannelReconciler(
            channels,
            settings=fast_capture_settings,
            audit_logger=audit_logger,
            on_exit=on_exit,
        )
    return _make


def success(amount=245, merchant="Swiggy", confidence=95):
    return CaptureEnvelope.success(
        ExtractionResult(amount=amount, merchant=merchant, confidence=confidence)
    )


def raw_success(data):
    return CaptureEnvelope.model_validate({"status": "success", "data": data})


class TestMountProbe:
    """Tests for the immediate probe on mount."""

    def test_native_bridge_hit(self, channels, make_reconciler):
        channels.native_bridge.publish(success())
        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.READY
        assert session.amount == 245
        assert session.merchant == "Swiggy"
        assert session.confidence == 95

    def test_session_ocr_hit(self, channels, make_reconciler):
        channels.session_ocr.publish(success(amount=99, merchant="Zomato"))
        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.READY
        assert session.amount == 99
        assert OCR_DATA_KEY not in channels.store

    def test_higher_priority_wins_and_all_are_drained(
        self, channels, make_reconciler, audit_logger
    ):
        """Test two populated channels apply exactly one result."""
        channels.native_bridge.publish(success(amount=100, merchant="Native"))
        channels.session_ocr.publish(success(amount=200, merchant="Session"))

        session = asyncio.run(make_reconciler().run())

        assert session.amount == 100
        assert session.merchant == "Native"
        assert channels.native_bridge.try_receive() is None
        assert channels.session_ocr.try_receive() is None

        received = audit_logger.of_type(AuditEventType.CHANNEL_RECEIVED)
        assert len(received) == 1
        assert received[0].details["discarded_channels"] == ["session_ocr"]


class TestReprobes:
    """Tests for late delivery and the hard timeout."""

    def test_late_native_delivery(self, channels, make_reconciler):
        async def scenario():
            loop = asyncio.get_running_loop()
            loop.call_later(0.03, channels.native_bridge.publish, success())
            return await make_reconciler().run()

        session = asyncio.run(scenario())
        assert session.status == CaptureStatus.READY

    def test_times_out_and_exits(self, make_reconciler, audit_logger):
        exits = []

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            session = await make_reconciler(on_exit=lambda: exits.append(True)).run()
            return session, loop.time() - started

        session, elapsed = asyncio.run(scenario())

        assert session.status == CaptureStatus.TIMED_OUT
        assert exits == [True]
        assert 0.14 <= elapsed < 1.0
        assert len(audit_logger.of_type(AuditEventType.CAPTURE_TIMED_OUT)) == 1

    def test_async_exit_callback_is_awaited(self, make_reconciler):
        exits = []

        async def go_back():
            exits.append(True)

        session = asyncio.run(make_reconciler(on_exit=go_back).run())

        assert session.status == CaptureStatus.TIMED_OUT
        assert exits == [True]

    def test_exit_not_called_on_resolution(self, channels, make_reconciler):
        exits = []
        channels.native_bridge.publish(success())
        asyncio.run(make_reconciler(on_exit=lambda: exits.append(True)).run())
        assert exits == []


class TestDecisionTree:
    """Tests for how a winning envelope is judged."""

    def test_error_envelope(self, channels, make_reconciler):
        channels.native_bridge.publish(CaptureEnvelope.failure())
        session = asyncio.run(make_reconciler().run())
        assert session.status == CaptureStatus.ERROR

    @pytest.mark.parametrize("data", [
        {"amount": 0, "merchant": "Cafe"},
        {"amount": -50, "merchant": "Cafe"},
        {"amount": "245", "merchant": "Cafe"},
        {"amount": None, "merchant": "Cafe"},
        {"amount": math.inf, "merchant": "Cafe"},
        {"amount": math.nan, "merchant": "Cafe"},
        {"amount": True, "merchant": "Cafe"},
        {"merchant": "Cafe"},
    ])
    def test_unusable_amount_is_no_amount(self, channels, make_reconciler, data):
        """Test an unusable amount never reaches ready."""
        channels.native_bridge.publish(raw_success(data))
        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.NO_AMOUNT
        assert session.merchant == "Cafe"
        assert session.amount is None

    def test_success_without_data_is_no_amount(self, channels, make_reconciler):
        channels.native_bridge.publish({"status": "success"})
        session = asyncio.run(make_reconciler().run())
        assert session.status == CaptureStatus.NO_AMOUNT

    def test_low_confidence_is_still_ready(self, channels, make_reconciler):
        channels.native_bridge.publish(success(confidence=20))
        session = asyncio.run(make_reconciler().run())
        assert session.status == CaptureStatus.READY

    def test_credit_type_is_kept(self, channels, make_reconciler):
        channels.native_bridge.publish(
            raw_success({"amount": 500, "merchant": "Rahul", "type": "credit"})
        )
        session = asyncio.run(make_reconciler().run())
        assert session.transaction_type.value == "credit"


class TestSharedImage:
    """Tests for the shared-image handoff."""

    def test_ocr_arrives_during_share_wait(self, channels, make_reconciler):
        async def scenario():
            channels.shared_image.publish(SharedImageRef(uri="content://media/3"))
            loop = asyncio.get_running_loop()
            loop.call_later(0.02, channels.session_ocr.publish, success(amount=320))
            return await make_reconciler().run()

        session = asyncio.run(scenario())

        assert session.status == CaptureStatus.READY
        assert session.amount == 320

    def test_no_ocr_after_share_wait_is_error(
        self, channels, make_reconciler, audit_logger
    ):
        channels.shared_image.publish(SharedImageRef(uri="content://media/3"))
        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.ERROR
        assert len(audit_logger.of_type(AuditEventType.SHARE_WAIT_STARTED)) == 1

    def test_ocr_already_present_wins_over_share(self, channels, make_reconciler):
        channels.shared_image.publish(SharedImageRef(uri="content://media/3"))
        channels.session_ocr.publish(success(amount=75))

        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.READY
        assert session.amount == 75
        assert len(channels.store) == 0


class TestMalformedPayloads:
    """Tests for garbage in the session slots."""

    def test_malformed_ocr_slot_is_error(self, channels, make_reconciler, audit_logger):
        channels.store.set_item(OCR_DATA_KEY, "{oops")
        session = asyncio.run(make_reconciler().run())

        assert session.status == CaptureStatus.ERROR
        assert OCR_DATA_KEY not in channels.store
        assert len(audit_logger.of_type(AuditEventType.CHANNEL_PAYLOAD_MALFORMED)) == 1

    def test_malformed_shared_image_is_error(self, channels, make_reconciler):
        channels.store.set_item("sharedImage", "not json")
        session = asyncio.run(make_reconciler().run())
        assert session.status == CaptureStatus.ERROR


class TestCancellation:
    """Tests for unmount/cancel."""

    def test_cancel_while_processing(self, channels, make_reconciler, audit_logger):
        async def scenario():
            reconciler = make_reconciler()
            task = asyncio.ensure_future(reconciler.run())
            await asyncio.sleep(0.03)
            await reconciler.cancel()
            session = await task

            # Nothing probes any more: a late payload stays unread
            channels.native_bridge.publish(success())
            await asyncio.sleep(0.2)
            return session

        session = asyncio.run(scenario())

        assert session.status == CaptureStatus.CANCELLED
        assert channels.native_bridge.try_receive() is not None
        assert len(audit_logger.of_type(AuditEventType.CAPTURE_CANCELLED)) == 1

    def test_cancel_clears_every_slot(self, channels, make_reconciler):
        async def scenario():
            reconciler = make_reconciler()
            task = asyncio.ensure_future(reconciler.run())
            await asyncio.sleep(0.01)
            channels.store.set_item(OCR_DATA_KEY, success().model_dump_json())
            channels.shared_image.publish(SharedImageRef(uri="content://media/3"))
            channels.native_bridge.publish(success())
            await reconciler.cancel()
            return await task

        asyncio.run(scenario())

        assert len(channels.store) == 0
        assert channels.native_bridge.try_receive() is None

    def test_cancel_after_resolution_keeps_outcome(self, channels, make_reconciler):
        async def scenario():
            channels.native_bridge.publish(success())
            reconciler = make_reconciler()
            session = await reconciler.run()
            channels.session_ocr.publish(success(amount=1))
            await reconciler.cancel()
            return session

        session = asyncio.run(scenario())

        assert session.status == CaptureStatus.READY
        assert session.amount == 245
        assert len(channels.store) == 0

    def test_outer_task_cancellation_propagates(self, channels, make_reconciler):
        async def scenario():
            reconciler = make_reconciler()
            task = asyncio.ensure_future(reconciler.run())
            await asyncio.sleep(0.01)
            channels.session_ocr.publish(success())
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return reconciler.session

        session = asyncio.run(scenario())

        assert session.status == CaptureStatus.CANCELLED
        assert len(channels.store) == 0

    def test_exit_callback_that_unmounts_clears_channels(
        self, channels, make_reconciler, audit_logger
    ):
        """Test cancel() awaited from on_exit still wipes late payloads."""
        holder = {}

        async def navigate_away():
            channels.shared_image.publish(SharedImageRef(uri="content://media/9"))
            channels.native_bridge.publish(success())
            await holder["reconciler"].cancel()

        async def scenario():
            holder["reconciler"] = make_reconciler(on_exit=navigate_away)
            return await holder["reconciler"].run()

        session = asyncio.run(scenario())

        assert session.status == CaptureStatus.TIMED_OUT
        assert len(channels.store) == 0
        assert channels.native_bridge.try_receive() is None
        assert len(audit_logger.of_type(AuditEventType.CAPTURE_CANCELLED)) == 1
