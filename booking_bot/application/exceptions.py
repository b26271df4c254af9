class SlotStoreError(RuntimeError):
    """Raised when the slot store cannot be read or written (network, quota, auth)."""
    pass


class NotificationError(RuntimeError):
    """Raised when the messaging provider rejects or fails an outbound call."""
    pass


class ReceiptError(RuntimeError):
    """Raised when a receipt cannot be rendered or stored."""
    pass


class TranscriptionError(RuntimeError):
    """Raised when an audio message cannot be transcribed."""
    pass
