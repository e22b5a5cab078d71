from fastapi import APIRouter

from chomp_recipes.app.api.routes import ingredients

api_router = APIRouter()
api_router.include_router(ingredients.router)
