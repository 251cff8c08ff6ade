from fastapi import APIRouter

from app.modules.payments.routes.attributions import router as attributions_router
from app.modules.payments.routes.payments import router as payments_router
from app.modules.payments.routes.spending_categories import router as spending_categories_router

router = APIRouter(prefix="/api")

router.include_router(spending_categories_router, prefix="/spending-categories", tags=["spending-categories"])
router.include_router(payments_router, prefix="/payments", tags=["payments"])
router.include_router(attributions_router, prefix="/payments", tags=["payment-attributions"])
