from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, ConflictError, NotFoundError, ValidationError, get_settings
from ..infrastructure.repositories import ActivityRepository
from ..models import Activity, Capacity
from .activity_matcher import normalize
from .capacity_service import normalize_time

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

# Fields that may change after the activity has been booked
NON_BOOKING_FIELDS = frozenset({
    "description", "image_urls", "featured", "rating", "review_count",
    "name_aliases", "active", "original_price",
})


def slugify(text: str) -> str:
    return "-".join(normalize(text).split())


class ActivityService(BaseService):
    """Activity catalogue maintenance"""

    def __init__(self, session: AsyncSession, activity_repo: Optional[ActivityRepository] = None):
        super().__init__(session)
        self.activity_repo = activity_repo or ActivityRepository(session)

    async def get(self, ref: int | str) -> Activity:
        activity = await self.activity_repo.get_by_ref(ref)
        if activity is None:
            raise NotFoundError("Activity", ref)
        return activity

    async def list(
        self,
        *,
        active: Optional[bool] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Activity]:
        return await self.activity_repo.list_activities(
            active=active, featured=featured, search=search, skip=skip, limit=limit
        )

    async def create(self, data: Dict[str, Any]) -> Activity:
        data = self._clean(dict(data))
        if not data.get("name"):
            raise ValidationError("Name is required", field="name")

        slug = data.get("slug") or slugify(data["name"])
        self._check_slug(slug)
        if await self.activity_repo.slug_taken(slug):
            raise ValidationError(f"Slug {slug} is already used", field="slug")
        data["slug"] = slug
        data.setdefault("currency", get_settings().DEFAULT_CURRENCY)

        activity = await self.activity_repo.create(obj_in=data)
        logger.info("activity %s (%s) created", activity.id, activity.slug)
        return activity

    async def update(self, ref: int | str, data: Dict[str, Any]) -> Activity:
        """Apply a partial update.

        Once reservations reference the activity only non-booking fields
        may change.
        """
        activity = await self.get(ref)
        data = self._clean(dict(data))

        changed = {k for k, v in data.items() if getattr(activity, k) != v}
        locked = changed - NON_BOOKING_FIELDS
        if locked and await self.activity_repo.has_reservations(activity.id):
            raise ConflictError(
                "Activity has reservations; cannot change " + ", ".join(sorted(locked))
            )

        if "slug" in changed:
            self._check_slug(data["slug"])
            if await self.activity_repo.slug_taken(data["slug"], exclude_id=activity.id):
                raise ValidationError(f"Slug {data['slug']} is already used", field="slug")

        for field in changed:
            setattr(activity, field, data[field])
        await self.session.flush()
        return activity

    async def delete(self, ref: int | str) -> None:
        activity = await self.get(ref)
        if await self.activity_repo.has_reservations(activity.id):
            raise ConflictError("Cannot delete an activity that has reservations")

        await self.session.execute(delete(Capacity).where(Capacity.activity_id == activity.id))
        await self.session.execute(delete(Activity).where(Activity.id == activity.id))
        self.session.expunge(activity)
        logger.info("activity %s deleted", activity.id)

    @staticmethod
    def _check_slug(slug: str) -> None:
        if not slug or not _SLUG_RE.match(slug):
            raise ValidationError("Slug must be lower-case words separated by dashes", field="slug")

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate schedule fields and normalise list values"""
        if "name" in data and data["name"] is not None:
            data["name"] = data["name"].strip()
        if data.get("default_times") is not None:
            times = [normalize_time(t, "defaultTimes") for t in data["default_times"]]
            data["default_times"] = sorted({t for t in times if t})
        if data.get("default_weekdays") is not None:
            days = data["default_weekdays"]
            if any(not isinstance(d, int) or not 0 <= d <= 6 for d in days):
                raise ValidationError("Weekdays must be numbers 0 (Monday) to 6 (Sunday)", field="defaultWeekdays")
            data["default_weekdays"] = sorted(set(days))
        if data.get("default_capacity") is not None and data["default_capacity"] < 0:
            raise ValidationError("defaultCapacity must not be negative", field="defaultCapacity")
        for key, field in (("price", "price"), ("original_price", "originalPrice")):
            if data.get(key) is not None:
                data[key] = Decimal(str(data[key]))
                if data[key] < 0:
                    raise ValidationError(f"{field} must not be negative", field=field)
        if data.get("currency"):
            data["currency"] = data["currency"].upper()
        return {k: v for k, v in data.items() if v is not None or k in ("description", "original_price", "rating")}
