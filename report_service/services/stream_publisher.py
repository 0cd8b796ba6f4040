"""Progress publishing and Server-Sent Events delivery"""
import asyncio
import logging
import math
from typing import Any, AsyncIterator, Dict, List, Optional

from ..config import settings
from ..utils.json_encoder import json_dumps

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_END_OF_STREAM = object()


def format_sse(payload: Dict[str, Any]) -> str:
    """Encode one event as an SSE ``data:`` frame"""
    return f"data: {json_dumps(payload)}\n\n"


def build_completion_events(
    result: Dict[str, Any],
    threshold: Optional[int] = None,
    chunk_size: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Split a final result into the events that deliver it.

    Small results go out as a single event. When the serialized result is
    at least ``threshold`` characters, a metadata event without rows is
    followed by one event per ``chunk_size`` rows and a completion marker.

    Args:
        result: Final report payload, including ``rawData``
        threshold: Serialized size that triggers chunking
        chunk_size: Rows per chunk event

    Returns:
        Events in delivery order
    """
    threshold = threshold or settings.STREAM_CHUNK_THRESHOLD
    chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE

    try:
        size = len(json_dumps(result))
    except (TypeError, ValueError) as e:
        logger.error(f"Final result is not serializable: {e}")
        return [{
            "status": result.get("status", "complete"),
            "message": "Report generated but the full result could not be serialized",
            "error": str(e),
            "report": result.get("report"),
        }]

    raw_data = result.get("rawData") or []
    if size < threshold or not raw_data:
        return [result]

    total_chunks = math.ceil(len(raw_data) / chunk_size)
    logger.info(f"Result is {size} chars, sending {len(raw_data)} rows in {total_chunks} chunks")

    events = [dict(result, rawData=[], rawDataPending=True)]
    for index in range(total_chunks):
        events.append({
            "rawDataChunk": raw_data[index * chunk_size:(index + 1) * chunk_size],
            "chunkIndex": index,
            "totalChunks": total_chunks,
        })
    events.append({"rawDataComplete": True, "rowCount": len(raw_data)})
    return events


class ProgressPublisher:
    """
    Receives pipeline milestones.

    The base publisher only logs; it backs the non-streaming endpoint.
    Once a terminal event has been published further events are dropped.
    """

    def __init__(self, request_id: str = "-"):
        self.request_id = request_id
        self.finished = False

    async def publish(self, event: Dict[str, Any]):
        logger.debug(f"[{self.request_id}] {event.get('status')}: {event.get('message')}")

    async def publish_progress(self, message: str, **payload):
        """
        Publish a ``processing`` milestone.

        Args:
            message: Human-readable progress message
            **payload: Extra fields merged into the event
        """
        if self.finished:
            return
        event = {"status": "processing", "message": message}
        event.update(payload)
        await self.publish(event)

    async def publish_complete(self, result: Dict[str, Any]):
        """Publish the final result, chunked when large"""
        if self.finished:
            return
        self.finished = True
        for event in build_completion_events(result):
            await self.publish(event)
        await self.finish()

    async def publish_error(self, error: str):
        """Publish the terminal error event"""
        if self.finished:
            return
        self.finished = True
        await self.publish({
            "status": "error",
            "message": f"Error generating report: {error}",
            "error": error,
        })
        await self.finish()

    async def finish(self):
        pass


class StreamPublisher(ProgressPublisher):
    """Queues events for a single SSE response"""

    def __init__(self, request_id: str = "-"):
        super().__init__(request_id)
        self._queue: asyncio.Queue = asyncio.Queue()
        self.disconnected = False

    async def publish(self, event: Dict[str, Any]):
        if self.disconnected:
            return
        await super().publish(event)
        await self._queue.put(event)

    async def finish(self):
        await self._queue.put(_END_OF_STREAM)

    def disconnect(self):
        """Client went away; stop queueing events"""
        if not self.disconnected:
            logger.info(f"[{self.request_id}] Client disconnected, dropping further events")
        self.disconnected = True

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the terminal event has been sent"""
        try:
            while True:
                event = await self._queue.get()
                if event is _END_OF_STREAM:
                    break
                yield format_sse(event)
        finally:
            if not self.finished:
                self.disconnect()
