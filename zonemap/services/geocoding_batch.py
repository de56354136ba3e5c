"""Sequential, cancellable batch geocoding to improve entity positions"""

import dataclasses
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from zonemap.models import GeoEntity, Vertex
from zonemap.services.geocoding_client import GeocodingClient
from zonemap.utils.exceptions import GeocodingError

logger = structlog.get_logger(__name__)


@dataclass
class GeocodeBatchResult:
    """Outcome of one batch; failures are aggregated, never raised per item"""

    requested: int = 0
    located: Dict[str, Vertex] = field(default_factory=dict)
    not_found: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False
    started_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    finished_at: Optional[str] = None

    @property
    def processed(self) -> int:
        return len(self.located) + len(self.not_found) + len(self.failed)

    def summary(self) -> Dict[str, object]:
        return {
            "requested": self.requested,
            "processed": self.processed,
            "located": len(self.located),
            "not_found": len(self.not_found),
            "failed": len(self.failed),
            "cancelled": self.cancelled,
            "errors": dict(self.failed),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }

    def apply(self, entities: Iterable[GeoEntity]) -> List[GeoEntity]:
        """New entity list with located coordinates swapped in"""
        updated = []
        for entity in entities:
            position = self.located.get(entity.id)
            if position is not None:
                entity = dataclasses.replace(entity, lat=position.lat, lng=position.lng)
            updated.append(entity)
        return updated


class BatchGeocoder:
    """
    Geocode many addresses one after another.

    The client throttles every network call; a failure for one item is
    logged and recorded and the batch moves on. ``cancel()`` stops the batch
    after the item currently being looked up.
    """

    def __init__(self, client: Optional[GeocodingClient] = None,
                 on_progress: Optional[Callable[[GeocodeBatchResult], None]] = None,
                 progress_every: int = 10):
        self.client = client or GeocodingClient()
        self.on_progress = on_progress
        self.progress_every = progress_every
        self._stop = threading.Event()

    def cancel(self) -> None:
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def run(self, items: Iterable[Tuple[str, str]]) -> GeocodeBatchResult:
        """
        Geocode (id, address) pairs

        Returns:
            Aggregated batch result
        """
        self._stop.clear()
        items = list(items)
        result = GeocodeBatchResult(requested=len(items))
        logger.info("Starting geocoding batch", requested=len(items))

        for item_id, address in items:
            if self._stop.is_set():
                result.cancelled = True
                logger.info("Geocoding batch cancelled", processed=result.processed)
                break

            if not address or not address.strip():
                result.not_found.append(item_id)
            else:
                try:
                    position = self.client.geocode(address)
                except GeocodingError as e:
                    logger.warning("Geocoding failed, skipping", id=item_id, address=address, error=str(e))
                    result.failed[item_id] = str(e)
                else:
                    if position is None:
                        result.not_found.append(item_id)
                    else:
                        result.located[item_id] = position

            if self.progress_every and result.processed % self.progress_every == 0:
                logger.info("Geocoding progress",
                            processed=result.processed,
                            located=len(result.located))
                if self.on_progress:
                    self.on_progress(result)

        result.finished_at = datetime.utcnow().isoformat()
        logger.info("Geocoding batch finished", **{k: v for k, v in result.summary().items() if k != "errors"})
        return result

    def run_entities(self, entities: Iterable[GeoEntity],
                     only_missing: bool = True) -> GeocodeBatchResult:
        """Geocode entities by address, by default only those without a valid position"""
        items = [
            (e.id, e.address) for e in entities
            if not (only_missing and e.has_valid_position)
        ]
        return self.run(items)
