"""
Realtime webhook schemas.
"""

from convoy.app.schemas.tracking import CamelModel


class WebhookAck(CamelModel):
    """Per-batch outcome counts returned to the transport."""
    received: int
    processed: int
    skipped: int
    ignored: int
