"""
Router for unit conversion utilities.
"""

from fastapi import APIRouter, HTTPException

from ..schemas import (
    Ingredient,
    RoundRequest,
    RoundResponse,
    ScaleIngredientRequest,
    SystemConvertRequest,
    Unit,
    UnitConvertRequest,
    UnitConvertResponse,
    UnitSystem,
)
from ..settings import settings
from ..services.unit_conversion import (
    convert,
    convert_to_system,
    get_units_for_system,
    resolve_unit,
    round_to_practical,
    scale_ingredient,
)

router = APIRouter()


def _unit_or_400(raw: str) -> Unit:
    unit = resolve_unit(raw)
    if unit is None:
        raise HTTPException(status_code=400, detail=f"Unknown unit '{raw}'")
    return unit


@router.post("/convert", response_model=UnitConvertResponse)
def convert_units(req: UnitConvertRequest):
    """
    Convert a quantity from one unit to another.
    Incompatible units come back with `compatible: false` and no quantity.
    """
    from_unit = _unit_or_400(req.from_unit)
    to_unit = _unit_or_400(req.to_unit)

    result = convert(req.quantity, from_unit, to_unit)
    return UnitConvertResponse(quantity=result, unit=to_unit, compatible=result is not None)


@router.post("/convert-system", response_model=Ingredient)
def convert_ingredient_to_system(req: SystemConvertRequest):
    system = req.target_system or UnitSystem(settings.default_unit_system)
    return convert_to_system(req.ingredient, system)


@router.post("/scale", response_model=Ingredient)
def scale(req: ScaleIngredientRequest):
    return scale_ingredient(req.ingredient, req.factor)


@router.post("/round", response_model=RoundResponse)
def round_quantity(req: RoundRequest):
    unit = _unit_or_400(req.unit)
    return RoundResponse(quantity=round_to_practical(req.quantity, unit), unit=unit)


@router.get("/systems/{system}", response_model=list[Unit])
def list_units_for_system(system: UnitSystem):
    return get_units_for_system(system)
