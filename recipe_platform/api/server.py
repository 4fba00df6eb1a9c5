from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from recipe_platform import __version__
from recipe_platform.api.responses import api_response, install_exception_handlers
from recipe_platform.auth import create_user, get_config, get_current_user, get_store, login, logout, refresh_session
from recipe_platform.config import Config, load_config
from recipe_platform.db import Store, open_store
from recipe_platform.errors import InternalError
from recipe_platform.images.client import ImageStore, ImageUploadError, open_image_store
from recipe_platform.images.uploads import has_file, push_image
from recipe_platform.models import TokenPair
from recipe_platform.recipes import crud as recipes
from recipe_platform.recipes.validation import build_recipe_update, validate_new_recipe


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def get_images(request: Request) -> ImageStore:
    images = getattr(request.app.state, "images", None)
    if images is None:
        raise InternalError("server_images_missing")
    return images


# -----------------------------
# Cookies
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    """Return whether auth cookies should be marked Secure."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    # Browsers require Secure when SameSite=None
    if samesite == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_session_cookies(response: Response, *, pair: TokenPair, cfg: Config) -> None:
    """Both tokens go out as httpOnly cookies; the refresh token never appears in a body."""
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    secure = _cookie_secure(cfg)
    path = str(cfg.AUTH_COOKIE_PATH or "/")

    response.set_cookie(
        key=cfg.AUTH_ACCESS_COOKIE_NAME,
        value=pair.access_token,
        httponly=True,
        samesite=samesite,
        secure=secure,
        max_age=int(cfg.ACCESS_TOKEN_EXPIRE_MINUTES) * 60,
        path=path,
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )
    response.set_cookie(
        key=cfg.AUTH_REFRESH_COOKIE_NAME,
        value=pair.refresh_token,
        httponly=True,
        samesite=samesite,
        secure=secure,
        max_age=int(cfg.REFRESH_TOKEN_EXPIRE_DAYS) * 86400,
        path=path,
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def _clear_session_cookies(response: Response, cfg: Config) -> None:
    # Same attributes as when set, or browsers may keep the SameSite=None cookies.
    samesite = str(cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    secure = _cookie_secure(cfg)
    path = str(cfg.AUTH_COOKIE_PATH or "/")
    for key in (cfg.AUTH_ACCESS_COOKIE_NAME, cfg.AUTH_REFRESH_COOKIE_NAME):
        response.delete_cookie(
            key=key,
            path=path,
            domain=cfg.AUTH_COOKIE_DOMAIN,
            secure=secure,
            httponly=True,
            samesite=samesite,
        )


# -----------------------------
# Auth
# -----------------------------

auth_router = APIRouter()


class RegisterRequest(BaseModel):
    # All optional here so a missing field gets the same 400 message as a blank one.
    username: Optional[str] = None
    email: Optional[str] = None
    fullName: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """`identifier` is a username or an email; `username`/`email` are accepted too."""

    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


@auth_router.post("/register")
async def auth_register(payload: RegisterRequest, store: Store = Depends(get_store)) -> JSONResponse:
    u = await create_user(
        store,
        username=payload.username or "",
        email=payload.email or "",
        full_name=payload.fullName or "",
        password=payload.password or "",
    )
    return api_response({"user": u}, "User registered successfully", status_code=201)


@auth_router.post("/login")
async def auth_login(
    payload: LoginRequest,
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
) -> JSONResponse:
    identifier = payload.identifier or payload.username or payload.email or ""
    pair, user = await login(cfg, store, identifier=identifier, password=payload.password or "")

    resp = api_response({"accessToken": pair.access_token, "user": user}, "User logged in successfully")
    _set_session_cookies(resp, pair=pair, cfg=cfg)
    return resp


@auth_router.post("/refresh-token")
async def auth_refresh_token(
    request: Request,
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
) -> JSONResponse:
    # Cookie only: a refresh token in the body is ignored.
    pair = await refresh_session(cfg, store, request.cookies.get(cfg.AUTH_REFRESH_COOKIE_NAME))

    resp = api_response({"accessToken": pair.access_token}, "Access token refreshed")
    _set_session_cookies(resp, pair=pair, cfg=cfg)
    return resp


@auth_router.post("/logout")
async def auth_logout(
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
) -> JSONResponse:
    await logout(store, str(user["_id"]))
    resp = api_response({}, "User logged out successfully")
    _clear_session_cookies(resp, cfg)
    return resp


@auth_router.get("/current-user")
async def auth_current_user(user: Dict[str, Any] = Depends(get_current_user)) -> JSONResponse:
    return api_response({"user": user}, "Current user fetched successfully")


# -----------------------------
# Recipes
# -----------------------------

# Every recipe route needs a signed-in user, reads included.
recipe_router = APIRouter(dependencies=[Depends(get_current_user)])


@recipe_router.get("/favorites")
async def recipes_favorites(
    user: Dict[str, Any] = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> JSONResponse:
    rows = await recipes.list_favorites(store, user)
    return api_response({"recipes": rows}, "Favorite recipes fetched successfully")


@recipe_router.post("/{recipe_id}/add-favorite")
async def recipes_add_favorite(
    recipe_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> JSONResponse:
    await recipes.add_favorite(store, user, recipe_id)
    return api_response({}, "Recipe added to favorites")


@recipe_router.delete("/{recipe_id}/remove-favorite")
async def recipes_remove_favorite(
    recipe_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> JSONResponse:
    await recipes.remove_favorite(store, user, recipe_id)
    return api_response({}, "Recipe removed from favorites")


@recipe_router.get("")
async def recipes_list(
    search: Optional[str] = Query(None),
    store: Store = Depends(get_store),
) -> JSONResponse:
    rows = await recipes.list_recipes(store, search=search)
    return api_response({"recipes": rows}, "Recipes fetched successfully")


@recipe_router.get("/user-recipes")
async def recipes_user_recipes(
    user: Dict[str, Any] = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> JSONResponse:
    rows = await recipes.list_user_recipes(store, user)
    return api_response({"recipes": rows}, "User recipes fetched successfully")


@recipe_router.post("/create")
async def recipes_create(
    name: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    ingredients: Optional[str] = Form(None),
    thumbnailImage: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
    images: ImageStore = Depends(get_images),
) -> JSONResponse:
    # Validate everything before anything leaves the process.
    fields = validate_new_recipe(
        name=name,
        instructions=instructions,
        ingredients=ingredients,
        has_thumbnail=has_file(thumbnailImage),
    )
    try:
        url = await push_image(cfg, images, thumbnailImage)  # type: ignore[arg-type]
    except ImageUploadError:
        raise InternalError("Error while uploading thumbnail image")

    recipe = await recipes.create_recipe(store, user, fields, thumbnail_url=url)
    return api_response({"recipe": recipe}, "Recipe created successfully", status_code=201)


@recipe_router.get("/{recipe_id}")
async def recipes_get(recipe_id: str, store: Store = Depends(get_store)) -> JSONResponse:
    recipe = await recipes.get_recipe(store, recipe_id)
    return api_response({"recipe": recipe}, "Recipe fetched successfully")


@recipe_router.patch("/{recipe_id}/update")
async def recipes_update(
    recipe_id: str,
    name: Optional[str] = Form(None),
    instructions: Optional[str] = Form(None),
    ingredients: Optional[str] = Form(None),
    thumbnailImage: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Depends(get_current_user),
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
    images: ImageStore = Depends(get_images),
) -> JSONResponse:
    recipe = await recipes.get_owned_recipe(store, recipe_id, user, "update")
    changes = build_recipe_update(name=name, instructions=instructions, ingredients=ingredients)

    if has_file(thumbnailImage):
        try:
            changes["thumbnailImage"] = await push_image(cfg, images, thumbnailImage)  # type: ignore[arg-type]
        except ImageUploadError:
            # Keep the current thumbnail; the rest of the update still applies.
            _debug(f"Keeping old thumbnail for recipe id={recipe['_id']} after failed upload")

    updated = await recipes.update_recipe(store, recipe, changes)
    return api_response({"recipe": updated}, "Recipe updated successfully")


@recipe_router.delete("/{recipe_id}/delete")
async def recipes_delete(
    recipe_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> JSONResponse:
    await recipes.delete_recipe(store, recipe_id, user)
    return api_response({}, "Recipe deleted successfully")


# -----------------------------
# App
# -----------------------------


def create_app(
    cfg: Config | None = None,
    *,
    store: Store | None = None,
    images: ImageStore | None = None,
) -> FastAPI:
    cfg = cfg or load_config()
    store = store if store is not None else open_store(cfg)
    images = images if images is not None else open_image_store(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.ensure_indexes()
        _debug(f"Started: store={store.kind} images={images.kind} prefix={cfg.API_PREFIX}")
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="Recipe Platform API", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.store = store
    app.state.images = images

    origins = cfg.cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    install_exception_handlers(app)

    @app.get("/")
    async def health() -> Dict[str, Any]:
        return {"success": True, "message": "Server is running successfully"}

    prefix = cfg.API_PREFIX.rstrip("/")
    app.include_router(auth_router, prefix=f"{prefix}/auth")
    app.include_router(recipe_router, prefix=f"{prefix}/recipes")
    return app


app = create_app()
