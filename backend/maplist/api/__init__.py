from fastapi import APIRouter

from maplist.api.v1 import auth as auth_router
from maplist.api.v1 import completions as completions_router
from maplist.api.v1 import config as config_router
from maplist.api.v1 import formats as formats_router
from maplist.api.v1 import maps as maps_router
from maplist.api.v1 import roles as roles_router
from maplist.api.v1 import users as users_router


api_router = APIRouter()

api_router.include_router(auth_router.router, tags=["auth"])
api_router.include_router(formats_router.router, prefix="/formats", tags=["formats"])
api_router.include_router(config_router.router, prefix="/config", tags=["config"])
api_router.include_router(maps_router.router, prefix="/maps", tags=["maps"])
api_router.include_router(completions_router.router, prefix="/completions", tags=["completions"])
api_router.include_router(roles_router.router, prefix="/roles", tags=["roles"])
api_router.include_router(users_router.router, prefix="/users", tags=["users"])
