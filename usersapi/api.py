"""FastAPI application exposing the users REST API."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, cast

from fastapi import APIRouter, Body, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ServiceConfig, load_config
from .controller import ControllerResult, UserController
from .docs import build_api_info, build_openapi_document
from .envelope import failure, validation_failed
from .health import build_health_report
from .store import UserStore
from .validation import (
    CREATE_RULES,
    LOOKUP_RULES,
    UPDATE_RULES,
    CreateUserRequest,
    UpdateUserRequest,
    ValidationError,
    validate_request,
)

logger = logging.getLogger("usersapi.api")

_ROUTE_ERRORS: Dict[int, str] = {
    status.HTTP_404_NOT_FOUND: "Route not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


def render(result: ControllerResult) -> Response:
    if result.envelope is None:
        return Response(status_code=result.status_code)
    return JSONResponse(status_code=result.status_code, content=result.envelope.to_json())


def reject(rejection: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=validation_failed(rejection.messages).to_json(),
    )


def _request_error_messages(exc: RequestValidationError) -> List[str]:
    messages: List[str] = []
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            message = "Request body must be valid JSON"
        else:
            message = str(error.get("msg", "Invalid request"))
        if message not in messages:
            messages.append(message)
    return messages


def register_user_routes(router: APIRouter, controller: UserController) -> None:
    """Attach the user CRUD endpoints to ``router``."""

    @router.get("/users")
    def list_users() -> Response:
        return render(controller.list_users())

    @router.get("/users/{user_id}")
    def read_user(user_id: str) -> Response:
        result = validate_request(LOOKUP_RULES, user_id=user_id)
        if isinstance(result, ValidationError):
            logger.info("Rejected lookup of %r: %s", user_id, "; ".join(result.messages))
            return reject(result)
        return render(controller.get_user(user_id))

    @router.post("/users")
    def create_user(payload: Any = Body(default=None)) -> Response:
        result = validate_request(CREATE_RULES, body=payload)
        if isinstance(result, ValidationError):
            logger.info("Rejected user creation: %s", "; ".join(result.messages))
            return reject(result)
        request = cast(CreateUserRequest, result.value.body)
        return render(controller.create_user(request))

    @router.put("/users/{user_id}")
    def update_user(user_id: str, payload: Any = Body(default=None)) -> Response:
        result = validate_request(UPDATE_RULES, user_id=user_id, body=payload)
        if isinstance(result, ValidationError):
            logger.info("Rejected update of %r: %s", user_id, "; ".join(result.messages))
            return reject(result)
        request = cast(UpdateUserRequest, result.value.body)
        return render(controller.update_user(user_id, request))

    @router.delete("/users/{user_id}")
    def delete_user(user_id: str) -> Response:
        result = validate_request(LOOKUP_RULES, user_id=user_id)
        if isinstance(result, ValidationError):
            logger.info("Rejected deletion of %r: %s", user_id, "; ".join(result.messages))
            return reject(result)
        return render(controller.delete_user(user_id))


def create_app(
    *,
    store: UserStore | None = None,
    config: ServiceConfig | None = None,
    controller: UserController | None = None,
) -> FastAPI:
    """Instantiate the users API application."""

    if config is None:
        config = load_config()
    if controller is None:
        controller = UserController(store if store is not None else UserStore())
    elif store is not None and controller.store is not store:
        raise ValueError("Controller must wrap the supplied store")

    app = FastAPI(
        title="Users REST API",
        version=config.version,
        description="In-memory CRUD service for user records",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.controller = controller
    app.state.store = controller.store
    app.state.started_at = time.monotonic()

    @app.get("/health")
    def healthcheck() -> Dict[str, object]:
        return build_health_report(config, app.state.started_at)

    api_router = APIRouter(prefix="/api/v1")

    @api_router.get("")
    def api_info() -> Dict[str, Any]:
        return build_api_info(config)

    @api_router.get("/docs")
    def api_docs() -> Dict[str, Any]:
        return build_openapi_document(config)

    register_user_routes(api_router, controller)
    app.include_router(api_router)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=validation_failed(_request_error_messages(exc)).to_json(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        message = _ROUTE_ERRORS.get(exc.status_code) or str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(message).to_json(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=failure("Internal server error").to_json(),
        )

    logger.info("Users API initialised (environment=%s, version=%s)", config.environment, config.version)
    return app


__all__ = ["create_app", "register_user_routes", "reject", "render"]
