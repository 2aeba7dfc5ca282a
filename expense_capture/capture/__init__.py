"""Capture package: channels, session state and the reconciler."""

from expense_capture.capture.channels import (
    OCR_DATA_KEY,
    SHARE_INTENT_PENDING_KEY,
    SHARED_IMAGE_KEY,
    CaptureChannel,
    CaptureChannels,
    MalformedChannelPayloadError,
    NativeBridgeChannel,
    SessionOcrChannel,
    SessionStore,
    SharedImageChannel,
)
from expense_capture.capture.reconciler import CaptureChannelReconciler
from expense_capture.capture.session import (
    CaptureSession,
    CaptureStateError,
    parse_amount_input,
)

__all__ = [
    # Channels
    "OCR_DATA_KEY",
    "SHARE_INTENT_PENDING_KEY",
    "SHARED_IMAGE_KEY",
    "CaptureChannel",
    "CaptureChannels",
    "MalformedChannelPayloadError",
    "NativeBridgeChannel",
    "SessionOcrChannel",
    "SessionStore",
    "SharedImageChannel",
    # Session
    "CaptureSession",
    "CaptureStateError",
    "parse_amount_input",
    # Reconciler
    "CaptureChannelReconciler",
]
