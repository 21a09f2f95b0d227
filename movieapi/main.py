# ------------------------------------------------------------
# main.py — FastAPI app factory: middleware, routers, error handlers
# ------------------------------------------------------------

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .db import Database
from .dependencies import AppContext
from .handlers import register_exception_handlers
from .middleware import AdmissionMiddleware, BlacklistStore, RateLimiter
from .models import init_schema
from .repositories import MovieRepository, UserRepository
from .routers import movies, users
from .security import PasswordHasher, TokenService

logger = logging.getLogger(__name__)

# any port on localhost is always welcome (local frontends, dev servers)
LOCALHOST_ORIGINS = r"^http://localhost(:\d+)?$"


def create_app(
    settings: Optional[Settings] = None,
    user_db: Optional[Database] = None,
    movie_db: Optional[Database] = None,
) -> FastAPI:
    """
    Build the application.

    Databases may be passed in already built (tests hand in SQLite);
    otherwise they come from `settings`. When users and movies are
    configured with the same backend they share one Database.
    """
    settings = settings or load_settings()

    if user_db is None:
        user_db = Database.from_settings(settings.user_db)
    if movie_db is None:
        if settings.movie_db is None or settings.movie_db == settings.user_db:
            movie_db = user_db
        else:
            movie_db = Database.from_settings(settings.movie_db)

    # create missing tables and seed roles
    if settings.create_schema:
        for db in {id(user_db): user_db, id(movie_db): movie_db}.values():
            init_schema(db.engine)

    blacklist = BlacklistStore()
    context = AppContext(
        settings=settings,
        movies=MovieRepository(movie_db),
        users=UserRepository(user_db, PasswordHasher(settings.salt_rounds)),
        tokens=TokenService(settings),
        blacklist=blacklist,
    )

    app = FastAPI(title="Movies API")
    app.state.context = context

    # the last middleware added runs first: CORS wraps admission control
    app.add_middleware(
        AdmissionMiddleware,
        blacklist=blacklist,
        general=RateLimiter(settings.rate_limit_max, settings.rate_limit_window),
        sensitive=RateLimiter(settings.rate_limit_sensitive_max, settings.rate_limit_window),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=LOCALHOST_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Authorization"],
    )

    app.include_router(movies.router)
    app.include_router(users.router)

    register_exception_handlers(app, production=settings.is_production)

    @app.get("/")
    def root():
        return {"ok": True, "service": "movies-api"}

    return app


def run(settings: Optional[Settings] = None) -> None:
    settings = settings or load_settings()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings)
    logger.info("Server listening on http://%s:%s", settings.host, settings.port)
    logger.info("API docs available on http://%s:%s/docs", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
