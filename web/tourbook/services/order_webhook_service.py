"""WooCommerce order webhook: external orders become reservations."""

from __future__ import annotations

import json
import logging
import re
from contextlib import asynccontextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseError, BaseService, ConflictError, ExternalPayloadError, get_settings
from ..infrastructure.repositories import ActivityRepository, ReservationRepository
from ..locks import KeyLock
from ..security import verify_woocommerce_signature
from .activity_matcher import match_activity
from .reservation_service import ReservationService
from .system_log_service import SystemLogService

logger = logging.getLogger(__name__)

SOURCE = "woocommerce"
CANCELLING_STATUSES = frozenset({"cancelled", "refunded", "failed"})
DEFAULT_CUSTOMER_NAME = "WooCommerce Müşteri"

DATE_KEYS = ("booking_date", "date", "tarih", "tour_date", "rezervasyon_tarihi")
TIME_KEYS = ("booking_time", "time", "saat", "tour_time", "rezervasyon_saati")

_DMY = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})$")
_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
_HM = re.compile(r"^(\d{1,2})[:.](\d{2})")


def _meta(entries: Any) -> Dict[str, Any]:
    """Flatten a WooCommerce ``meta_data`` list into ``{normalised_key: value}``"""
    result: Dict[str, Any] = {}
    if not isinstance(entries, list):
        return result
    for entry in entries:
        if not isinstance(entry, dict) or "key" not in entry:
            continue
        key = re.sub(r"[\s-]+", "_", str(entry["key"]).strip().lower()).lstrip("_")
        result.setdefault(key, entry.get("value"))
    return result


def _first(meta: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = meta.get(key)
        if value not in (None, ""):
            return str(value).strip()
    return None


def parse_booking_date(value: Optional[str]) -> Optional[str]:
    """``YYYY-MM-DD`` from ISO or day-first (``01.06.2024``) input"""
    if not value:
        return None
    match = _YMD.match(value)
    if match:
        y, mo, d = match.groups()
        return f"{int(y):04d}-{int(mo):02d}-{int(d):02d}"
    match = _DMY.match(value)
    if match:
        d, mo, y = match.groups()
        return f"{int(y):04d}-{int(mo):02d}-{int(d):02d}"
    return value


def parse_booking_time(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = _HM.match(value)
    if match:
        h, mi = match.groups()
        return f"{int(h):02d}:{mi}"
    return value


class OrderWebhookService(BaseService):
    """Translates order payloads into reservation admissions.

    Every delivery is acknowledged; problems are written to the system log
    instead of being returned to the shop.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.settings = get_settings()
        self.reservations = ReservationService(session)
        self.reservation_repo = ReservationRepository(session)
        self.activity_repo = ActivityRepository(session)
        self.system_log = SystemLogService(session)

    async def handle(self, body: bytes, signature: Optional[str] = None) -> Dict[str, Any]:
        try:
            if not verify_woocommerce_signature(body, signature, self.settings.WOOCOMMERCE_WEBHOOK_SECRET):
                raise ExternalPayloadError(SOURCE, "signature mismatch")
            order = self._parse(body)
        except ExternalPayloadError as exc:
            await self._log("warn", exc.message, {"body": body[:500].decode("utf-8", "replace")})
            return {"received": False}

        if order is None:
            return {"received": True, "processed": 0, "skipped": 0}

        order_id = str(order["id"])
        try:
            async with self._order_lock(order_id):
                return await self._process(order_id, order)
        except ConflictError as exc:
            await self._log("warn", exc.message, {"orderId": order_id})
            return {"received": False}
        except ExternalPayloadError as exc:
            await self._log("warn", exc.message, {"orderId": order_id})
            return {"received": False}
        except Exception as exc:
            logger.exception("order %s could not be processed", order_id)
            await self.session.rollback()
            await self._log("error", f"order {order_id} failed: {exc.__class__.__name__}", {"orderId": order_id})
            return {"received": False}

    @staticmethod
    def _parse(body: bytes) -> Optional[Dict[str, Any]]:
        """Decoded order, or ``None`` for the delivery test WooCommerce sends on setup"""
        try:
            payload = json.loads(body or b"")
        except (ValueError, UnicodeDecodeError) as exc:
            raise ExternalPayloadError(SOURCE, f"body is not JSON ({exc})")
        if not isinstance(payload, dict):
            raise ExternalPayloadError(SOURCE, "body is not a JSON object")
        if "id" not in payload:
            if "webhook_id" in payload:
                return None
            raise ExternalPayloadError(SOURCE, "order id missing")
        if not str(payload["id"]).strip():
            raise ExternalPayloadError(SOURCE, "order id is empty")
        return payload

    @asynccontextmanager
    async def _order_lock(self, order_id: str):
        """Serialise deliveries of one order; runs unlocked when Redis is down"""
        lock = KeyLock(
            f"{SOURCE}:order:{order_id}",
            ttl=self.settings.WEBHOOK_LOCK_TTL,
            timeout=self.settings.WEBHOOK_LOCK_TIMEOUT,
        )
        try:
            await lock.acquire()
        except (RedisError, OSError) as exc:
            logger.warning("order lock unavailable for %s: %s", order_id, exc)
            yield
            return
        try:
            yield
        finally:
            try:
                await lock.release()
            except (RedisError, OSError) as exc:
                logger.warning("order lock for %s not released: %s", order_id, exc)

    async def _process(self, order_id: str, order: Dict[str, Any]) -> Dict[str, Any]:
        existing = await self.reservation_repo.get_by_external(SOURCE, order_id)
        status = str(order.get("status") or "").lower()

        if status in CANCELLING_STATUSES:
            cancelled = 0
            for reservation in existing:
                if reservation.status != "cancelled":
                    await self.reservations.cancel(reservation.id)
                    cancelled += 1
            await self._log("info", f"order {order_id} {status}, {cancelled} reservation(s) cancelled", {"orderId": order_id})
            return {"received": True, "cancelled": cancelled}

        if existing:
            logger.info("order %s already processed (%s reservations)", order_id, len(existing))
            return {"received": True, "duplicate": True, "processed": len(existing)}

        items = order.get("line_items")
        if not isinstance(items, list) or not items:
            raise ExternalPayloadError(SOURCE, f"order {order_id} has no line items")

        processed = skipped = 0
        for index, item in enumerate(items):
            item_id = str(item.get("id", index)) if isinstance(item, dict) else str(index)
            try:
                await self._admit_item(order_id, order, item, item_id)
                processed += 1
            except BaseError as exc:
                skipped += 1
                await self._log("warn", f"order {order_id} item {item_id} skipped: {exc.message}",
                                {"orderId": order_id, "itemId": item_id, **exc.details})
            except SQLAlchemyError as exc:
                skipped += 1
                logger.exception("storage failure on order %s item %s", order_id, item_id)
                await self.session.rollback()
                await self._log("error", f"order {order_id} item {item_id} failed: {exc.__class__.__name__}",
                                {"orderId": order_id, "itemId": item_id})

        return {"received": True, "processed": processed, "skipped": skipped}

    async def _admit_item(self, order_id: str, order: Dict[str, Any], item: Any, item_id: str):
        if not isinstance(item, dict):
            raise ExternalPayloadError(SOURCE, "line item is not an object")

        product = str(item.get("name") or "").strip()
        activity = match_activity(product, await self.activity_repo.list_activities(active=True, limit=1000))
        if activity is None:
            raise ExternalPayloadError(SOURCE, f"no activity matches product {product!r}")

        item_meta, order_meta = _meta(item.get("meta_data")), _meta(order.get("meta_data"))
        day = parse_booking_date(_first(item_meta, DATE_KEYS) or _first(order_meta, DATE_KEYS))
        if day is None:
            raise ExternalPayloadError(SOURCE, "booking date missing")
        start = parse_booking_time(_first(item_meta, TIME_KEYS) or _first(order_meta, TIME_KEYS))

        try:
            quantity = int(item.get("quantity", 1))
        except (TypeError, ValueError):
            raise ExternalPayloadError(SOURCE, f"invalid quantity {item.get('quantity')!r}")

        billing = order.get("billing") if isinstance(order.get("billing"), dict) else {}
        name = " ".join(
            part for part in (str(billing.get("first_name") or "").strip(), str(billing.get("last_name") or "").strip())
            if part
        ) or DEFAULT_CUSTOMER_NAME

        await self.reservations.create(
            activity_id=activity.id,
            date=day,
            time=start,
            quantity=quantity,
            customer_name=name,
            customer_phone=billing.get("phone"),
            customer_email=billing.get("email") or None,
            notes=str(order.get("customer_note") or "").strip() or None,
            status="confirmed",
            source=SOURCE,
            currency=order.get("currency") or self.settings.DEFAULT_CURRENCY,
            total_price=_amount(item.get("total")),
            external_id=order_id,
            external_item_id=item_id,
        )

    async def _log(self, level: str, message: str, details: Dict[str, Any]) -> None:
        await self.system_log.record(level, "woocommerce-webhook", message, details)
        await self.session.commit()


def _amount(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None
