from fastapi import APIRouter

from app.modules.budget.routes.allocations import router as allocations_router
from app.modules.budget.routes.categories import router as categories_router
from app.modules.budget.routes.projections import router as projections_router
from app.modules.budget.routes.templates import router as templates_router

router = APIRouter(prefix="/api")

router.include_router(categories_router, prefix="/budget-categories", tags=["budget-categories"])
router.include_router(templates_router, prefix="/budget/templates", tags=["budget-templates"])
router.include_router(projections_router, prefix="/budget/projections", tags=["budget-projections"])
router.include_router(allocations_router, prefix="/budget-allocations", tags=["budget-allocations"])
