"""Progress events emitted while a scan runs."""

import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import BaseModel, Field

from apiprobe.config.probe import utcnow
from apiprobe.utils import logger

PROBE_STARTED = "probe_started"
PROBE_FINISHED = "probe_finished"
FINDING = "finding"
SCAN_FINISHED = "scan_finished"


class ScanEvent(BaseModel):
    scan_id: str
    type: str
    probe: Optional[str] = None
    endpoint: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


EventCallback = Callable[[ScanEvent], Union[None, Awaitable[None]]]


class EventEmitter:
    """Forwards events to an optional sync or async callback.

    Subscriber failures are logged and never interrupt the scan.
    """

    def __init__(self, scan_id: str, callback: Optional[EventCallback] = None):
        self.scan_id = scan_id
        self.callback = callback

    async def emit(self, event_type: str, probe: Optional[str] = None,
                   endpoint: Optional[str] = None, **data: Any) -> None:
        if self.callback is None:
            return
        event = ScanEvent(scan_id=self.scan_id, type=event_type, probe=probe, endpoint=endpoint, data=data)
        try:
            outcome = self.callback(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Event callback failed on {event_type}: {e}")
