from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.responses import JSONResponse

from config import VERSION, Settings
from errors import PersistenceError, ValidationError
from helpers.cache import Clock, ResultCache
from helpers.crafty import AliasResolver, CraftyResolver
from helpers.datasets import DatasetStore
from helpers.search import SearchService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# --- Models ---
class RecordOut(BaseModel):
    nick: str
    ip: str
    file: str


class MessageOut(BaseModel):
    message: str


# --- App ---
def create_app(
    settings: Optional[Settings] = None,
    resolver: Optional[AliasResolver] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = await DatasetStore.load(settings.data_dir)
        cache = ResultCache(ttl=settings.cache_ttl_sec, clock=clock)
        app.state.settings = settings
        app.state.search = SearchService(
            store,
            cache,
            resolver or CraftyResolver(settings.resolver_url, timeout=settings.resolver_timeout_sec),
        )
        logger.info("nickleak-api started (data_dir=%s, cache_ttl=%ss)", settings.data_dir, settings.cache_ttl_sec)
        yield

    app = FastAPI(title="nickleak-api", version=VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health(request: Request):
        search: SearchService = request.app.state.search
        return {"status": "ok", "service": "nickleak-api", "datasets": len(search.store), "version": app.version}

    @app.get("/search", response_model=List[RecordOut])
    async def search_nick(request: Request, nick: Optional[str] = None):
        if not nick or not nick.strip():
            return JSONResponse({"error": "Nick is required"}, status_code=400)

        search: SearchService = request.app.state.search
        try:
            results = await search.search(nick)
        except Exception:
            logger.exception("Error during search for %s", nick)
            return JSONResponse({"error": "Internal Server Error"}, status_code=500)

        if not results:
            return JSONResponse({"error": "No results found"}, status_code=404)
        return [r.to_json() for r in results]

    # Body is parsed by hand so that missing fields reach add_record's validation
    @app.post("/add", response_model=MessageOut)
    async def add(request: Request):
        search: SearchService = request.app.state.search
        try:
            try:
                data = await request.json()
            except ValueError:
                raise ValidationError("body", "must be valid JSON")
            if not isinstance(data, dict):
                raise ValidationError("body", "must be a JSON object")
            await search.add_record(data)
        except (ValidationError, PersistenceError) as e:
            logger.warning("Rejected new data: %s", e)
            return JSONResponse({"message": "Failed to add new data"}, status_code=500)
        except Exception:
            logger.exception("Error adding new data")
            return JSONResponse({"error": "Internal Server Error"}, status_code=500)
        return {"message": "New data added successfully"}

    # API routes take precedence over static files
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format=LOG_FORMAT, datefmt="%H:%M:%S")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
