# chatbot/server.py
import sys, json, logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatbot.config import Settings, get_settings
from chatbot.errors import ChatbotError, StatusCode
from chatbot.routers.message_router import router as message_router
from chatbot.services.document_store import build_document_store
from chatbot.services.message_store import MessageLogStore


def configure_logging(level: str) -> None:
    # ---- Logging: JSON lines on stdout ----
    logging.basicConfig(stream=sys.stdout, level=level, format="%(message)s")
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def create_app(settings: Optional[Settings] = None, message_store: Optional[MessageLogStore] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if message_store is None:
        documents = build_document_store(settings.storage_backend, settings.sqlite_path, settings.storage_timeout)
        message_store = MessageLogStore(documents, storage_timeout=settings.storage_timeout)

    app = FastAPI(title="Artisan chatbot API")
    app.state.settings = settings
    app.state.message_store = message_store

    # ---- CORS ----
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["POST", "DELETE", "OPTIONS", "GET"],
        allow_headers=["Content-Type", "X-API-Key"],
    )

    # ---- Error envelope: {"code": ..., "message": ...} ----
    @app.exception_handler(ChatbotError)
    async def chatbot_error_handler(request: Request, exc: ChatbotError):
        return JSONResponse(status_code=exc.http_status, content={"code": exc.code.value, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logging.warning(json.dumps({"event": "request.invalid", "path": request.url.path, "errors": len(exc.errors())}))
        return JSONResponse(status_code=400, content={"code": StatusCode.BAD_REQUEST.value, "message": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logging.exception(json.dumps({"event": "server.error", "path": request.url.path}))
        return JSONResponse(
            status_code=500,
            content={"code": StatusCode.INTERNAL_SERVER_ERROR.value, "message": "Internal Server Error"},
        )

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/")
    def root():
        return {"message": "Artisan chatbot API is running!"}

    # ---- Routers ----
    app.include_router(message_router)
    return app


def main() -> None:
    settings = get_settings()
    app = create_app(settings)
    logging.info(json.dumps({"event": "server.start", "port": settings.port, "env": settings.runtime_env,
                             "storage": settings.storage_backend}))
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
