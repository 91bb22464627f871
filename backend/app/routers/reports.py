from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends

from ..config import settings
from ..db import Database, get_db
from ..deps import require_admin, require_seller
from ..errors import InvalidInput

router = APIRouter(tags=["reports"])

PERIODS = ("day", "week", "month")
DEFAULT_PERIOD = "month"
_PERIOD_DAYS = {"week": 7, "month": 30}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _local_tz() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def local_day_bounds(now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    [start, end) of the calendar day containing `now` in `tz`, as aware datetimes.
    """
    local_date = now.astimezone(tz).date()
    start = datetime.combine(local_date, time.min, tzinfo=tz)
    end = datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def _parse_period(period: Optional[str]) -> str:
    p = (period or "").strip().lower() or DEFAULT_PERIOD
    if p not in PERIODS:
        raise InvalidInput(
            f"unknown period '{period}': use one of {', '.join(PERIODS)} (default {DEFAULT_PERIOD})"
        )
    return p


def window_start(period: str, now: datetime, tz: ZoneInfo) -> datetime:
    # day = since local midnight; week/month = rolling 7/30 days.
    if period == "day":
        return local_day_bounds(now, tz)[0]
    return now - timedelta(days=_PERIOD_DAYS[period])


def _dec(v) -> Decimal:
    if v is None:
        return Decimal("0")
    return v if isinstance(v, Decimal) else Decimal(str(v))


@router.get("/api/vendor-sales")
def vendor_sales(user=Depends(require_seller), db: Database = Depends(get_db)):
    """
    The authenticated seller's sales for their current local day.
    """
    tz = _local_tz()
    now = _now()
    start, end = local_day_bounds(now, tz)
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id, ticket_number, total_amount, sale_date AS created_at
                FROM sales
                WHERE user_id = %s
                  AND sale_date >= %s
                  AND sale_date < %s
                ORDER BY sale_date DESC
                """,
                (user["id"], start, end),
            )
            sales = cur.fetchall()

    total = sum((_dec(s["total_amount"]) for s in sales), Decimal("0"))
    return {
        "success": True,
        "sales": sales,
        "total": total,
        "count": len(sales),
        "date": start.date().isoformat(),
        "period": "day",
        "start_time": start.isoformat(),
        "end_time": end.isoformat(),
    }


@router.get("/api/admin/wholesale-stats")
def wholesale_stats(user=Depends(require_admin), db: Database = Depends(get_db)):
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                  (SELECT COUNT(DISTINCT se.product_id)
                   FROM stock_entries se
                   WHERE se.sale_price_wholesale > 0)::int AS products_with_wholesale,
                  (SELECT COUNT(*) FROM products)::int AS products_total,
                  (SELECT AVG(se.sale_price_unit - se.sale_price_wholesale)
                   FROM stock_entries se
                   WHERE se.sale_price_wholesale > 0) AS avg_wholesale_discount,
                  (SELECT COUNT(*) FROM sale_items si WHERE si.sale_type = 'wholesale')::int AS wholesale_sales,
                  (SELECT COUNT(*) FROM sale_items si WHERE si.sale_type <> 'wholesale')::int AS regular_sales
                """
            )
            row = cur.fetchone() or {}

    with_wholesale = int(row.get("products_with_wholesale") or 0)
    total_products = int(row.get("products_total") or 0)
    return {
        "total_products_with_wholesale": with_wholesale,
        "total_products_without_wholesale": max(0, total_products - with_wholesale),
        "avg_wholesale_discount": _dec(row.get("avg_wholesale_discount")).quantize(Decimal("0.01")),
        "total_wholesale_sales": int(row.get("wholesale_sales") or 0),
        "total_regular_sales": int(row.get("regular_sales") or 0),
    }


@router.get("/api/admin/wholesale-comparison")
def wholesale_comparison(
    period: Optional[str] = None,
    user=Depends(require_admin),
    db: Database = Depends(get_db),
):
    p = _parse_period(period)
    now = _now()
    start = window_start(p, now, _local_tz())
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT si.sale_type,
                       COUNT(DISTINCT si.sale_id)::int AS total_sales,
                       COALESCE(SUM(si.total_price), 0) AS total_amount,
                       COALESCE(AVG(si.total_price), 0) AS avg_sale_amount,
                       COALESCE(SUM(si.quantity), 0)::int AS total_items_sold
                FROM sale_items si
                JOIN sales s ON s.id = si.sale_id
                WHERE s.sale_date >= %s
                  AND s.sale_date <= %s
                GROUP BY si.sale_type
                ORDER BY si.sale_type
                """,
                (start, now),
            )
            rows = cur.fetchall()

    comparison = [
        {
            "sale_type": r["sale_type"],
            "total_sales": int(r["total_sales"] or 0),
            "total_amount": _dec(r["total_amount"]),
            "avg_sale_amount": _dec(r["avg_sale_amount"]).quantize(Decimal("0.01")),
            "total_items_sold": int(r["total_items_sold"] or 0),
        }
        for r in rows
    ]
    return {
        "period": p,
        "start_date": start.isoformat(),
        "end_date": now.isoformat(),
        "comparison": comparison,
    }


@router.get("/api/reports/sales")
def sales_report(
    period: Optional[str] = None,
    user=Depends(require_admin),
    db: Database = Depends(get_db),
):
    p = _parse_period(period)
    now = _now()
    start = window_start(p, now, _local_tz())
    with db.connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT COALESCE(SUM(total_amount), 0) AS total_sales,
                       COUNT(*)::int AS total_transactions
                FROM sales
                WHERE sale_date >= %s
                  AND sale_date <= %s
                """,
                (start, now),
            )
            row = cur.fetchone() or {}
    return {
        "total_sales": _dec(row.get("total_sales")),
        "total_transactions": int(row.get("total_transactions") or 0),
        "period": p,
        "start_date": start.isoformat(),
        "end_date": now.isoformat(),
    }
