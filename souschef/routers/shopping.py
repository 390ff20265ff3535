"""Shopping list API router.

Endpoints:
- POST /api/shopping/generate - Consolidate recipes into a new list
- GET /api/shopping/{list_id} - Get list
- GET /api/shopping/{list_id}/by-category - Items grouped in aisle order
- POST /api/shopping/{list_id}/items - Add custom item
- POST /api/shopping/{list_id}/items/{item_id}/check | /uncheck
- GET /api/shopping/{list_id}/export - Plain-text checklist
- DELETE /api/shopping/{list_id}
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..deps import get_shopping_service
from ..schemas import CustomItemInput, GenerateShoppingRequest, ShoppingItem, ShoppingList
from ..services.shopping import ShoppingService

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.post("/generate", response_model=ShoppingList, status_code=201)
@limiter.limit("30/minute")
def generate_list(
    request: Request,  # Required for rate limiter
    req: GenerateShoppingRequest,
    service: ShoppingService = Depends(get_shopping_service),
):
    return service.generate_from_recipes(req.recipe_ids, servings=req.servings)


@router.get("/{list_id}", response_model=ShoppingList)
def get_list(list_id: str, service: ShoppingService = Depends(get_shopping_service)):
    shopping_list = service.get_list(list_id)
    if shopping_list is None:
        raise HTTPException(status_code=404, detail="Shopping list not found")
    return shopping_list


@router.get("/{list_id}/by-category", response_model=dict[str, list[ShoppingItem]])
def get_items_by_category(list_id: str, service: ShoppingService = Depends(get_shopping_service)):
    return service.get_items_by_category(list_id)


@router.post("/{list_id}/items", response_model=ShoppingItem, status_code=201)
def add_custom_item(
    list_id: str,
    data: CustomItemInput,
    service: ShoppingService = Depends(get_shopping_service),
):
    return service.add_custom_item(list_id, data)


@router.post("/{list_id}/items/{item_id}/check", response_model=ShoppingItem)
def check_item(list_id: str, item_id: str, service: ShoppingService = Depends(get_shopping_service)):
    return service.check_item(list_id, item_id)


@router.post("/{list_id}/items/{item_id}/uncheck", response_model=ShoppingItem)
def uncheck_item(list_id: str, item_id: str, service: ShoppingService = Depends(get_shopping_service)):
    return service.uncheck_item(list_id, item_id)


@router.get("/{list_id}/export", response_class=PlainTextResponse)
def export_list(list_id: str, service: ShoppingService = Depends(get_shopping_service)):
    return service.export_to_text(list_id)


@router.delete("/{list_id}", status_code=204)
def delete_list(list_id: str, service: ShoppingService = Depends(get_shopping_service)):
    service.delete_list(list_id)
    return Response(status_code=204)
