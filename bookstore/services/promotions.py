from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from bookstore.core.errors import BookstoreError, NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.db.models import Promotion, as_utc_naive, now_utc
from bookstore.db.session import transaction
from bookstore.store.catalog_store import get_promotion_by_code, normalize_code

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_DATES = ("start_date", "end_date")
_EDITABLE = {"description", "discount_percentage", "discount_amount", "start_date", "end_date", "max_usage", "is_active"}


def _check_rules(
    discount_percentage: Optional[Decimal],
    discount_amount: Optional[Decimal],
    start_date: datetime,
    end_date: Optional[datetime],
    max_usage: Optional[int],
) -> None:
    if discount_percentage is not None and discount_amount is not None:
        raise ValidationError("Promotion cannot have both percentage and fixed amount discount.")
    if discount_percentage is None and discount_amount is None:
        raise ValidationError("Promotion must have either a percentage or a fixed amount discount.")
    if discount_percentage is not None and not (0 < discount_percentage <= 100):
        raise ValidationError("Discount percentage must be greater than 0 and at most 100.")
    if discount_amount is not None and discount_amount <= 0:
        raise ValidationError("Discount amount must be greater than 0.")
    if end_date is not None and end_date < start_date:
        raise ValidationError("Promotion end date cannot be before its start date.")
    if max_usage is not None and max_usage < 1:
        raise ValidationError("Max usage must be at least 1.")


def validate_and_calculate_discount(db: Session, code: str, subtotal: Decimal, now: Optional[datetime] = None) -> Decimal:
    """Return the discount ``code`` grants on ``subtotal``; never more than the subtotal.

    Read-only: spending a use is :func:`increment_usage`, called by the order
    transaction once everything else has succeeded.
    """
    logger.info("Validating promotion code %s for subtotal %s", code, subtotal)
    promo = get_promotion_by_code(db, code) if code else None
    if promo is None:
        logger.warning("Promotion code %s not found", code)
        raise ValidationError("Invalid promotion code.")
    if not promo.is_active:
        logger.warning("Promotion code %s is inactive", code)
        raise ValidationError("This promotion code is currently inactive.")

    now = as_utc_naive(now) or now_utc()
    if promo.start_date > now:
        logger.warning("Promotion code %s not active until %s", code, promo.start_date)
        raise ValidationError("This promotion code is not active yet.")
    if promo.end_date is not None and promo.end_date < now:
        logger.warning("Promotion code %s expired at %s", code, promo.end_date)
        raise ValidationError("This promotion code has expired.")
    if promo.max_usage is not None and promo.current_usage >= promo.max_usage:
        logger.warning("Promotion code %s reached its usage limit (%s/%s)", code, promo.current_usage, promo.max_usage)
        raise ValidationError("This promotion code has reached its usage limit.")

    if promo.discount_percentage is not None:
        discount = subtotal * promo.discount_percentage / Decimal(100)
    elif promo.discount_amount is not None:
        discount = promo.discount_amount
    else:
        discount = ZERO
    discount = max(ZERO, min(discount, subtotal)).quantize(CENT, rounding=ROUND_HALF_UP)

    logger.info("Promotion code %s validated, discount %s", code, discount)
    return discount


def increment_usage(db: Session, code: str) -> int:
    """Spend one use of ``code`` in the caller's transaction. Does not commit.

    The UPDATE only matches while a use remains, so racing orders cannot push
    ``current_usage`` past ``max_usage``.
    """
    stmt = (
        update(Promotion)
        .where(
            Promotion.code_normalized == normalize_code(code),
            or_(Promotion.max_usage.is_(None), Promotion.current_usage < Promotion.max_usage),
        )
        .values(current_usage=Promotion.current_usage + 1, updated_at=now_utc())
        .returning(Promotion.current_usage)
        .execution_options(synchronize_session="fetch")
    )
    usage = db.execute(stmt).scalar_one_or_none()
    if usage is None:
        if get_promotion_by_code(db, code) is None:
            raise NotFoundError(f"Promotion code '{code}' not found")
        logger.warning("Promotion code %s ran out of uses while ordering", code)
        raise ValidationError("This promotion code has reached its usage limit.")
    logger.info("Incremented usage count for promotion code %s to %s", code, usage)
    return usage


def create_promotion(
    db: Session,
    code: str,
    start_date: datetime,
    discount_percentage: Optional[Decimal] = None,
    discount_amount: Optional[Decimal] = None,
    end_date: Optional[datetime] = None,
    max_usage: Optional[int] = None,
    is_active: bool = True,
    description: Optional[str] = None,
) -> Promotion:
    code = (code or "").strip()
    if not code:
        raise ValidationError("Promotion code cannot be empty.")
    start_date, end_date = as_utc_naive(start_date), as_utc_naive(end_date)
    _check_rules(discount_percentage, discount_amount, start_date, end_date, max_usage)

    try:
        with transaction(db):
            if get_promotion_by_code(db, code) is not None:
                raise ValidationError(f"Promotion code '{code}' already exists.")
            promo = Promotion(
                code=code,
                code_normalized=normalize_code(code),
                description=description,
                discount_percentage=discount_percentage,
                discount_amount=discount_amount,
                start_date=start_date,
                end_date=end_date,
                max_usage=max_usage,
                current_usage=0,
                is_active=is_active,
            )
            db.add(promo)
    except BookstoreError:
        raise
    except Exception:
        logger.exception("Failed to create promotion %s", code)
        raise
    logger.info("Promotion %s created (id=%s)", promo.code, promo.id)
    return promo


def update_promotion(db: Session, promotion_id: int, changes: Dict[str, Any]) -> Optional[Promotion]:
    """Apply ``changes`` to a promotion; returns None when it does not exist.

    The code and usage counter are not editable here.
    """
    unknown = set(changes) - _EDITABLE
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if "start_date" in changes and changes["start_date"] is None:
        raise ValidationError("Promotion start date is required.")
    changes = {k: as_utc_naive(v) if k in _DATES else v for k, v in changes.items()}

    with transaction(db):
        promo = db.get(Promotion, promotion_id)
        if promo is None:
            return None
        merged = {k: getattr(promo, k) for k in _EDITABLE}
        merged.update(changes)
        _check_rules(merged["discount_percentage"], merged["discount_amount"], merged["start_date"], merged["end_date"], merged["max_usage"])
        if merged["max_usage"] is not None and merged["max_usage"] < promo.current_usage:
            raise ValidationError("Max usage cannot be lower than the current usage.")
        for k, v in changes.items():
            setattr(promo, k, v)
    logger.info("Promotion %s updated: %s", promotion_id, sorted(changes))
    return promo


def delete_promotion(db: Session, promotion_id: int) -> bool:
    with transaction(db):
        promo = db.get(Promotion, promotion_id)
        if promo is None:
            return False
        db.delete(promo)
    logger.info("Promotion %s deleted", promotion_id)
    return True


def get_promotion(db: Session, promotion_id: int) -> Optional[Promotion]:
    return db.get(Promotion, promotion_id)


def list_promotions(db: Session) -> List[Promotion]:
    return list(db.execute(select(Promotion).order_by(Promotion.created_at.desc(), Promotion.id.desc())).scalars().all())


def list_active_promotions(db: Session, now: Optional[datetime] = None) -> List[Promotion]:
    now = as_utc_naive(now) or now_utc()
    stmt = (
        select(Promotion)
        .where(
            Promotion.is_active.is_(True),
            Promotion.start_date <= now,
            or_(Promotion.end_date.is_(None), Promotion.end_date >= now),
            or_(Promotion.max_usage.is_(None), Promotion.current_usage < Promotion.max_usage),
        )
        .order_by(Promotion.start_date)
    )
    return list(db.execute(stmt).scalars().all())
