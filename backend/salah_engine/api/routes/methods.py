"""Calculation Methods — read-only listing of the built-in registry."""

from fastapi import APIRouter

from salah_engine.core.calculation_methods import get_method, list_methods
from salah_engine.schemas.schedule import MethodResponse

router = APIRouter(prefix="/api/v1/methods", tags=["methods"])


@router.get("", response_model=list[MethodResponse])
async def list_calculation_methods():
    return [MethodResponse.from_domain(m) for m in list_methods()]


@router.get("/{method_id}", response_model=MethodResponse)
async def get_calculation_method(method_id: str):
    """Unknown ids → 400 UNKNOWN_METHOD via the global handler."""
    return MethodResponse.from_domain(get_method(method_id))
