import asyncio
import json
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dealmate.core.config import settings
from dealmate.core.database import async_session_maker
from dealmate.schemas.processing import JobStatus, ProcessingStatus, ProcessingStep
from dealmate.schemas.realtime import StatusStreamEvent, StreamEventType
from dealmate.services.processing.reconciler import StatusReconciler
from dealmate.services.processing.status_tracker import ProcessingStatusTracker
from dealmate.services.realtime import RealtimeHub, get_realtime_hub
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)


def stream_event_type(status: ProcessingStatus) -> StreamEventType:
    """Map a status snapshot to the event announcing it."""
    if status.current_step == ProcessingStep.COMPLETE.value:
        return StreamEventType.COMPLETED
    if status.current_step == JobStatus.CANCELLED.value:
        return StreamEventType.CANCELLED
    if status.current_step == ProcessingStep.ERROR.value or (status.error and not status.is_processing):
        return StreamEventType.FAILED
    return StreamEventType.STATUS


TERMINAL_EVENTS = {StreamEventType.COMPLETED, StreamEventType.CANCELLED, StreamEventType.FAILED}


class SSEManager:
    """Streams reconciled processing status for a deal as Server-Sent Events."""

    def __init__(
        self,
        hub: Optional[RealtimeHub] = None,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        heartbeat_interval: Optional[float] = None,
    ):
        self.hub = hub or get_realtime_hub()
        self.session_factory = session_factory
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None else settings.processing.stream_heartbeat_seconds
        )

    async def stream_deal_status(self, deal_id: str) -> AsyncGenerator[str, None]:
        """Stream status snapshots until the deal's job reaches a terminal state.

        Hub events are applied as they arrive; each idle heartbeat interval
        re-syncs from the store and emits instead of a heartbeat on change.
        """
        tracker = ProcessingStatusTracker(deal_id)
        reconciler = StatusReconciler(tracker, session_factory=self.session_factory, hub=self.hub)
        subscription = reconciler.subscribe()

        try:
            await reconciler.sync()
            last_sent = tracker.status
            event_type = stream_event_type(last_sent)
            yield self._format_sse(self._status_event(deal_id, last_sent, event_type))
            if event_type in TERMINAL_EVENTS:
                return

            while True:
                try:
                    row_event = await asyncio.wait_for(subscription.get(), timeout=self.heartbeat_interval)
                except asyncio.TimeoutError:
                    # Writes from other processes never reach the hub; re-read the store
                    await reconciler.sync()
                    if tracker.status == last_sent:
                        yield self._format_sse(StatusStreamEvent(
                            event_type=StreamEventType.HEARTBEAT,
                            deal_id=str(deal_id),
                            data={"message": "keep-alive"}
                        ))
                        continue
                else:
                    await reconciler.handle_event(row_event)
                    if tracker.status == last_sent:
                        continue

                last_sent = tracker.status
                event_type = stream_event_type(last_sent)
                yield self._format_sse(self._status_event(deal_id, last_sent, event_type))
                if event_type in TERMINAL_EVENTS:
                    break

        except asyncio.CancelledError:
            LOGGER.info(f"SSE connection cancelled for deal {deal_id}")
            raise
        except Exception as e:
            LOGGER.error(f"Error in SSE stream for {deal_id}: {e}", exc_info=True)
            yield self._format_sse(StatusStreamEvent(
                event_type=StreamEventType.FAILED,
                deal_id=str(deal_id),
                data={"message": f"Stream error: {str(e)}"}
            ))
        finally:
            subscription.close()

    def _status_event(
        self,
        deal_id: str,
        status: ProcessingStatus,
        event_type: StreamEventType,
    ) -> StatusStreamEvent:
        return StatusStreamEvent(event_type=event_type, deal_id=str(deal_id), data=status.model_dump())

    def _format_sse(self, event: StatusStreamEvent) -> str:
        """Format a StatusStreamEvent as a raw SSE message."""
        data = event.model_dump(mode="json")
        return f"event: {data['event_type']}\ndata: {json.dumps(data)}\n\n"
