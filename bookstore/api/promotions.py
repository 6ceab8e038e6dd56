from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from bookstore.api.deps import get_db
from bookstore.core.auth import get_current_identity, require_admin
from bookstore.core.errors import NotFoundError
from bookstore.schemas import DiscountQuote, DiscountQuoteRequest, PromotionCreate, PromotionRead, PromotionUpdate
from bookstore.services import promotions as promo_service
from bookstore.store.catalog_store import get_promotion_by_code

router = APIRouter()

@router.get("/v1/admin/promotions", response_model=List[PromotionRead])
def list_promotions(active_only: bool = False, _=Depends(require_admin), db: Session = Depends(get_db)):
    rows = promo_service.list_active_promotions(db) if active_only else promo_service.list_promotions(db)
    return [PromotionRead.model_validate(p) for p in rows]

@router.post("/v1/admin/promotions", response_model=PromotionRead, status_code=201)
def create_promotion(payload: PromotionCreate, _=Depends(require_admin), db: Session = Depends(get_db)):
    promo = promo_service.create_promotion(db, **payload.model_dump())
    return PromotionRead.model_validate(promo)

@router.get("/v1/admin/promotions/by-code/{code}", response_model=PromotionRead)
def get_by_code(code: str, _=Depends(require_admin), db: Session = Depends(get_db)):
    promo = get_promotion_by_code(db, code)
    if not promo:
        raise NotFoundError("Promotion not found")
    return PromotionRead.model_validate(promo)

@router.get("/v1/admin/promotions/{promotion_id}", response_model=PromotionRead)
def get_promotion(promotion_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    promo = promo_service.get_promotion(db, promotion_id)
    if not promo:
        raise NotFoundError("Promotion not found")
    return PromotionRead.model_validate(promo)

@router.patch("/v1/admin/promotions/{promotion_id}", response_model=PromotionRead)
def update_promotion(promotion_id: int, payload: PromotionUpdate, _=Depends(require_admin), db: Session = Depends(get_db)):
    promo = promo_service.update_promotion(db, promotion_id, payload.model_dump(exclude_unset=True))
    if not promo:
        raise NotFoundError("Promotion not found")
    return PromotionRead.model_validate(promo)

@router.delete("/v1/admin/promotions/{promotion_id}", status_code=204)
def delete_promotion(promotion_id: int, _=Depends(require_admin), db: Session = Depends(get_db)):
    if not promo_service.delete_promotion(db, promotion_id):
        raise NotFoundError("Promotion not found")
    return Response(status_code=204)

@router.post("/v1/promotions/validate", response_model=DiscountQuote)
def validate(payload: DiscountQuoteRequest, _=Depends(get_current_identity), db: Session = Depends(get_db)):
    discount = promo_service.validate_and_calculate_discount(db, payload.code, payload.subtotal)
    return DiscountQuote(
        code=payload.code, subtotal=payload.subtotal,
        discount_amount=discount, total_after_discount=payload.subtotal - discount,
    )
