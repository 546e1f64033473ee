"""Offer persistence with URL-based deduplication.

The offers.url UNIQUE constraint is the dedup boundary. Inserts use a
single INSERT ... ON CONFLICT DO NOTHING statement, so two monitors that
discover the same listing concurrently still produce one row.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_CEILING, Decimal
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select, delete, func, and_, insert as generic_insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from priceradar.core.exceptions import PersistenceError
from priceradar.models.monitor import Monitor
from priceradar.models.offer import Offer
from priceradar.schemas.query import StructuredQuery
from priceradar.scrapers.base import ExtractedOffer
from priceradar.scrapers.url_builder import site_name_for_url

logger = structlog.get_logger(__name__)

FALLBACK_URL_TEMPLATE = "priceradar://monitors/{monitor_id}/no-results"


def _fallback_price(query: StructuredQuery) -> Decimal:
    # Rounded up to cents so the stored price never drops below the floor
    if not query.price_min:
        return Decimal("0")
    return Decimal(str(query.price_min)).quantize(Decimal("0.01"), rounding=ROUND_CEILING)


@dataclass
class PersistResult:
    """Outcome of persisting a single offer."""

    created: bool
    id: UUID


@dataclass
class BulkCreateResult:
    """Outcome of persisting a list of offers."""

    created: int = 0
    total: int = 0
    ids: List[UUID] = field(default_factory=list)


class OfferService:
    """Service for storing and querying offers."""

    def __init__(self, db: AsyncSession):
        """Initialize offer service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="offer_service")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_offer(self, fields: Dict[str, Any]) -> PersistResult:
        """Insert an offer unless its URL already exists.

        Args:
            fields: Offer column values; must include monitor_id, user_id,
                title, price, currency, url, site_name

        Returns:
            PersistResult with created=False and the existing id on a duplicate
        """
        result = await self._insert_or_get(fields)
        await self._commit()
        return result

    async def persist(self, monitor: Monitor, offer: ExtractedOffer) -> PersistResult:
        """Store an extracted offer for a monitor (idempotent by URL)."""
        return await self.create_offer(self._fields_for(monitor, offer))

    async def create_offer_bulk(
        self,
        monitor: Monitor,
        offers: Sequence[ExtractedOffer],
    ) -> BulkCreateResult:
        """Store many offers in one transaction.

        Returns:
            BulkCreateResult with counts and the ids of newly created rows
        """
        outcome = BulkCreateResult(total=len(offers))
        for offer in offers:
            result = await self._insert_or_get(self._fields_for(monitor, offer))
            if result.created:
                outcome.created += 1
                outcome.ids.append(result.id)
        await self._commit()

        self.logger.info(
            "offers_persisted",
            monitor_id=str(monitor.id),
            created=outcome.created,
            total=outcome.total,
        )
        return outcome

    async def create_fallback_offer(self, monitor: Monitor, query: StructuredQuery) -> PersistResult:
        """Create the diagnostic placeholder shown when a run finds nothing.

        Its URL is unique per monitor, so at most one exists per monitor. It is
        priced at the query floor (0 without one) so it stays within the
        monitor's price bounds.
        """
        fields = {
            "monitor_id": monitor.id,
            "user_id": monitor.user_id,
            "title": f"{query.item} - no listings found",
            "price": _fallback_price(query),
            "currency": "EUR",
            "url": FALLBACK_URL_TEMPLATE.format(monitor_id=monitor.id),
            "site_name": "Price Radar",
            "snippet": (
                "No listings matched this monitor on its last run. "
                "Check the monitor's sites and filters."
            ),
            "is_fallback": True,
        }
        result = await self.create_offer(fields)
        self.logger.info(
            "fallback_offer_created" if result.created else "fallback_offer_exists",
            monitor_id=str(monitor.id),
        )
        return result

    async def delete_older_than(self, days_old: int) -> int:
        """Delete archived offers found more than days_old days ago.

        Returns:
            Number of offers deleted
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)
        try:
            result = await self.db.execute(
                delete(Offer)
                .where(and_(
                    Offer.status == "archived",
                    Offer.found_at < cutoff,
                ))
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to delete old offers: {e}") from e

        deleted = result.rowcount or 0
        self.logger.info("old_offers_deleted", days_old=days_old, deleted=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def offer_exists_by_url(self, url: str) -> bool:
        """Check whether an offer with this canonical URL is stored."""
        return await self._get_id_by_url(url) is not None

    async def count_for_monitor(self, monitor_id: UUID) -> int:
        """Count offers (including placeholders) stored for a monitor."""
        try:
            result = await self.db.execute(
                select(func.count(Offer.id)).where(Offer.monitor_id == monitor_id)
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count offers for {monitor_id}: {e}") from e
        return result.scalar() or 0

    async def get_by_monitor_id(
        self,
        monitor_id: UUID,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Offer]:
        """Get a monitor's offers, most recent first.

        Args:
            monitor_id: Monitor UUID
            status: Optional status filter ("new", "archived", "clicked")
            limit: Optional maximum number of rows
        """
        query = select(Offer).where(Offer.monitor_id == monitor_id)
        if status:
            query = query.where(Offer.status == status)
        query = query.order_by(Offer.found_at.desc())
        if limit:
            query = query.limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load offers for {monitor_id}: {e}") from e
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _fields_for(monitor: Monitor, offer: ExtractedOffer) -> Dict[str, Any]:
        return {
            "monitor_id": monitor.id,
            "user_id": monitor.user_id,
            "title": offer.title,
            "price": offer.price,
            "currency": offer.currency,
            "url": offer.url,
            "site_name": site_name_for_url(offer.url),
            "snippet": offer.snippet,
            "image_url": offer.image_url,
            "condition": offer.condition,
            "location": offer.location,
        }

    async def _insert_or_get(self, fields: Dict[str, Any]) -> PersistResult:
        """Atomically insert unless the URL exists; return the winning row id."""
        values = {
            "id": uuid4(),
            "status": "new",
            "is_fallback": False,
            "snippet": "",
            "found_at": datetime.now(timezone.utc),
            **fields,
        }
        dialect = self.db.get_bind().dialect.name

        try:
            if dialect in ("postgresql", "sqlite"):
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                stmt = (
                    insert(Offer)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=[Offer.url])
                    .returning(Offer.id)
                )
                inserted_id = (await self.db.execute(stmt)).scalar_one_or_none()
            else:
                try:
                    async with self.db.begin_nested():
                        await self.db.execute(generic_insert(Offer).values(**values))
                    inserted_id = values["id"]
                except IntegrityError:
                    inserted_id = None

            if inserted_id is not None:
                self.logger.debug("offer_created", url=values["url"], offer_id=str(inserted_id))
                return PersistResult(created=True, id=inserted_id)

            existing_id = await self._get_id_by_url(values["url"])
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to persist offer {values['url']}: {e}") from e

        if existing_id is None:
            # Conflict reported but the row vanished (deleted concurrently)
            raise PersistenceError(f"Offer {values['url']} conflicted but could not be found")

        self.logger.debug("offer_duplicate_skipped", url=values["url"], offer_id=str(existing_id))
        return PersistResult(created=False, id=existing_id)

    async def _get_id_by_url(self, url: str) -> Optional[UUID]:
        try:
            result = await self.db.execute(select(Offer.id).where(Offer.url == url))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up offer {url}: {e}") from e
        return result.scalar_one_or_none()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Failed to commit offers: {e}") from e
