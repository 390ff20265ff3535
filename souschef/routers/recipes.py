"""Recipes API router.

Endpoints:
- GET /api/recipes - List recipes (archived hidden unless asked for)
- POST /api/recipes - Create recipe (version 1)
- GET /api/recipes/{id} - Get recipe, optionally with an older version's content
- PUT /api/recipes/{id} - Edit recipe (appends a version)
- GET /api/recipes/{id}/versions - Full version history
- POST /api/recipes/{id}/versions/{v}/restore - Restore v as a new version
- POST /api/recipes/{id}/duplicate - Copy with lineage
- GET /api/recipes/{id}/heritage - Ancestors and children
- POST /api/recipes/{id}/archive | /unarchive
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..deps import get_recipe_service
from ..schemas import Recipe, RecipeHeritage, RecipeInput, RecipeVersion
from ..services.recipe_versions import RecipeService

router = APIRouter()


@router.get("", response_model=list[Recipe])
def list_recipes(
    include_archived: bool = Query(False),
    service: RecipeService = Depends(get_recipe_service),
):
    return service.list_recipes(include_archived=include_archived)


@router.post("", response_model=Recipe, status_code=201)
def create_recipe(data: RecipeInput, service: RecipeService = Depends(get_recipe_service)):
    return service.create_recipe(data)


@router.get("/{recipe_id}", response_model=Recipe)
def get_recipe(
    recipe_id: str,
    version: Optional[int] = Query(None, ge=1),
    service: RecipeService = Depends(get_recipe_service),
):
    recipe = service.get_recipe(recipe_id, version=version)
    if recipe is None:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return recipe


@router.put("/{recipe_id}", response_model=Recipe)
def update_recipe(
    recipe_id: str,
    data: RecipeInput,
    service: RecipeService = Depends(get_recipe_service),
):
    return service.update_recipe(recipe_id, data)


@router.get("/{recipe_id}/versions", response_model=list[RecipeVersion])
def get_version_history(recipe_id: str, service: RecipeService = Depends(get_recipe_service)):
    return service.get_version_history(recipe_id)


@router.post("/{recipe_id}/versions/{version}/restore", response_model=Recipe)
def restore_version(
    recipe_id: str,
    version: int,
    service: RecipeService = Depends(get_recipe_service),
):
    return service.restore_version(recipe_id, version)


@router.post("/{recipe_id}/duplicate", response_model=Recipe, status_code=201)
def duplicate_recipe(recipe_id: str, service: RecipeService = Depends(get_recipe_service)):
    return service.duplicate_recipe(recipe_id)


@router.get("/{recipe_id}/heritage", response_model=RecipeHeritage)
def get_recipe_heritage(recipe_id: str, service: RecipeService = Depends(get_recipe_service)):
    return service.get_recipe_heritage(recipe_id)


@router.post("/{recipe_id}/archive", status_code=204)
def archive_recipe(recipe_id: str, service: RecipeService = Depends(get_recipe_service)):
    service.archive_recipe(recipe_id)
    return Response(status_code=204)


@router.post("/{recipe_id}/unarchive", status_code=204)
def unarchive_recipe(recipe_id: str, service: RecipeService = Depends(get_recipe_service)):
    service.unarchive_recipe(recipe_id)
    return Response(status_code=204)
