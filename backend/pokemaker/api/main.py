from fastapi import APIRouter

from pokemaker.api.routes import creatures, drafts, login, users, utils

api_router = APIRouter()
api_router.include_router(login.router)
api_router.include_router(users.router)
api_router.include_router(utils.router)
api_router.include_router(creatures.router)
api_router.include_router(drafts.router)
