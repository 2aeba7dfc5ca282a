"""
Capture Channels

An extraction result can reach the capture screen three ways:

1. NativeBridge   - the host app pushes an envelope object straight in
2. Session OCR    - the host writes a serialized envelope to `ocrData`
3. Shared image   - the share target writes an image reference to
                    `sharedImage` before OCR has run

DESIGN DECISION: Every channel is write-once, read-once.
`try_receive()` clears the slot whether or not the payload parses, so a
re-render (or the next session) can never pick up the same data twice.
Nothing stops two channels from being populated at once; ordering is
the reconciler's job, not the channel's.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from pydantic import ValidationError

from expense_capture.models.expense import (
    CaptureChannelName,
    CaptureEnvelope,
    SharedImageRef,
)


OCR_DATA_KEY = "ocrData"
SHARED_IMAGE_KEY = "sharedImage"
SHARE_INTENT_PENDING_KEY = "shareIntentPending"


class MalformedChannelPayloadError(Exception):
    """A channel held a payload that is not a valid envelope/reference."""

    def __init__(self, channel: CaptureChannelName, message: str):
        self.channel = channel
        super().__init__(f"{channel.value}: {message}")


class SessionStore:
    """
    String key/value store scoped to one app session.

    Mirrors the WebView's sessionStorage: values are strings and a
    missing key reads as None.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


class CaptureChannel(ABC):
    """A single delivery channel for capture payloads."""

    name: CaptureChannelName

    @abstractmethod
    def try_receive(self) -> Optional[Any]:
        """
        Read and clear the channel.

        Returns:
            The payload, or None if the channel is empty

        Raises:
            MalformedChannelPayloadError: If the slot held garbage
                (the slot is cleared anyway)
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Wipe the channel without reading it."""
        pass


class NativeBridgeChannel(CaptureChannel):
    """Transient slot the native host writes an envelope object into."""

    name = CaptureChannelName.NATIVE_BRIDGE

    def __init__(self):
        self._payload: Optional[Any] = None

    def publish(self, payload: Union[CaptureEnvelope, dict]) -> None:
        self._payload = payload

    def try_receive(self) -> Optional[CaptureEnvelope]:
        payload, self._payload = self._payload, None
        if payload is None:
            return None
        if isinstance(payload, CaptureEnvelope):
            return payload
        try:
            return CaptureEnvelope.model_validate(payload)
        except ValidationError as e:
            raise MalformedChannelPayloadError(self.name, str(e)) from e

    def clear(self) -> None:
        self._payload = None


class SessionOcrChannel(CaptureChannel):
    """Completed OCR result, serialized into the session store."""

    name = CaptureChannelName.SESSION_OCR

    def __init__(self, store: SessionStore):
        self._store = store

    def publish(self, envelope: CaptureEnvelope) -> None:
        self._store.set_item(OCR_DATA_KEY, envelope.model_dump_json())

    def try_receive(self) -> Optional[CaptureEnvelope]:
        raw = self._store.get_item(OCR_DATA_KEY)
        if raw is None:
            return None
        self._store.remove_item(OCR_DATA_KEY)
        try:
            return CaptureEnvelope.model_validate_json(raw)
        except ValidationError as e:
            raise MalformedChannelPayloadError(self.name, str(e)) from e

    def clear(self) -> None:
        self._store.remove_item(OCR_DATA_KEY)


class SharedImageChannel(CaptureChannel):
    """
    Image shared into the app before OCR ran.

    Not a result by itself: it tells the reconciler that an OCR result
    is probably on its way.
    """

    name = CaptureChannelName.SHARED_IMAGE

    def __init__(self, store: SessionStore):
        self._store = store

    def publish(self, image: SharedImageRef) -> None:
        self._store.set_item(SHARED_IMAGE_KEY, image.model_dump_json(by_alias=True))
        self._store.set_item(SHARE_INTENT_PENDING_KEY, "true")

    def try_receive(self) -> Optional[SharedImageRef]:
        raw = self._store.get_item(SHARED_IMAGE_KEY)
        if raw is None:
            return None
        self.clear()
        try:
            return SharedImageRef.model_validate_json(raw)
        except ValidationError as e:
            raise MalformedChannelPayloadError(self.name, str(e)) from e

    def clear(self) -> None:
        self._store.remove_item(SHARED_IMAGE_KEY)
        self._store.remove_item(SHARE_INTENT_PENDING_KEY)


class CaptureChannels:
    """
    The three channels, in fixed probe priority order.

    Usage:
        channels = CaptureChannels()
        channels.native_bridge.publish(envelope)
        for channel in channels.in_priority_order():
            ...
    """

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store if store is not None else SessionStore()
        self.native_bridge = NativeBridgeChannel()
        self.session_ocr = SessionOcrChannel(self.store)
        self.shared_image = SharedImageChannel(self.store)

    def in_priority_order(self) -> list[CaptureChannel]:
        return [self.native_bridge, self.session_ocr, self.shared_image]

    def clear_all(self) -> None:
        for channel in self.in_priority_order():
            channel.clear()
