"""OpenAPI document served from ``/api/v1/docs``."""

from __future__ import annotations

from typing import Any, Dict

from .config import ServiceConfig
from .envelope import UserPayload
from .validation import IDENTIFIER_PATTERN, CreateUserRequest, UpdateUserRequest

_REF_TEMPLATE = "#/components/schemas/{model}"
_API_TITLE = "Users REST API"


def _schema_ref(name: str) -> Dict[str, str]:
    return {"$ref": _REF_TEMPLATE.format(model=name)}


def _json_content(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"application/json": {"schema": schema}}


def _envelope_schema(data_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "data": data_schema,
            "message": {"type": "string"},
        },
        "required": ["success"],
    }


_ID_PARAMETER: Dict[str, Any] = {
    "name": "id",
    "in": "path",
    "required": True,
    "schema": {"type": "string", "pattern": IDENTIFIER_PATTERN},
    "description": "User ID (generated as a UUID)",
}

_ERROR_RESPONSE: Dict[str, Any] = {"content": _json_content(_schema_ref("ErrorEnvelope"))}


def _error(description: str) -> Dict[str, Any]:
    return {"description": description, **_ERROR_RESPONSE}


def _components() -> Dict[str, Any]:
    user_schema = UserPayload.model_json_schema(by_alias=True, mode="serialization")
    user_schema["title"] = "User"
    return {
        "User": user_schema,
        "CreateUserRequest": CreateUserRequest.model_json_schema(),
        "UpdateUserRequest": UpdateUserRequest.model_json_schema(),
        "ErrorEnvelope": {
            "type": "object",
            "properties": {
                "success": {"type": "boolean", "enum": [False]},
                "error": {"type": "string"},
                "details": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["success", "error"],
        },
    }


def build_openapi_document(config: ServiceConfig) -> Dict[str, Any]:
    """Return the OpenAPI 3.0 description of the users API."""

    user_envelope = _envelope_schema(_schema_ref("User"))
    return {
        "openapi": "3.1.0",
        "info": {
            "title": _API_TITLE,
            "version": config.version,
            "description": "In-memory CRUD service for user records",
        },
        "servers": [{"url": config.server_url(), "description": f"{config.environment.title()} server"}],
        "paths": {
            "/": {
                "get": {
                    "summary": "API Information",
                    "description": "Get API information and available endpoints",
                    "responses": {
                        "200": {
                            "description": "Successful response",
                            "content": _json_content(
                                {
                                    "type": "object",
                                    "properties": {
                                        "message": {"type": "string"},
                                        "version": {"type": "string"},
                                        "endpoints": {"type": "object"},
                                    },
                                }
                            ),
                        }
                    },
                }
            },
            "/users": {
                "get": {
                    "summary": "Get all users",
                    "description": "Retrieve every user in creation order",
                    "responses": {
                        "200": {
                            "description": "List of users",
                            "content": _json_content(
                                _envelope_schema({"type": "array", "items": _schema_ref("User")})
                            ),
                        },
                        "500": _error("Internal error"),
                    },
                },
                "post": {
                    "summary": "Create a new user",
                    "description": "Create a new user with the provided data",
                    "requestBody": {
                        "required": True,
                        "content": _json_content(_schema_ref("CreateUserRequest")),
                    },
                    "responses": {
                        "201": {"description": "User created successfully", "content": _json_content(user_envelope)},
                        "400": _error("Bad request - validation error"),
                        "500": _error("Internal error"),
                    },
                },
            },
            "/users/{id}": {
                "get": {
                    "summary": "Get user by ID",
                    "description": "Retrieve a specific user by their ID",
                    "parameters": [_ID_PARAMETER],
                    "responses": {
                        "200": {"description": "User found", "content": _json_content(user_envelope)},
                        "400": _error("Invalid user ID"),
                        "404": _error("User not found"),
                    },
                },
                "put": {
                    "summary": "Update user",
                    "description": "Update the supplied fields of an existing user",
                    "parameters": [_ID_PARAMETER],
                    "requestBody": {
                        "required": True,
                        "content": _json_content(_schema_ref("UpdateUserRequest")),
                    },
                    "responses": {
                        "200": {"description": "User updated successfully", "content": _json_content(user_envelope)},
                        "400": _error("Bad request - validation error"),
                        "404": _error("User not found"),
                    },
                },
                "delete": {
                    "summary": "Delete user",
                    "description": "Delete a user by their ID",
                    "parameters": [_ID_PARAMETER],
                    "responses": {
                        "204": {"description": "User deleted successfully"},
                        "400": _error("Invalid user ID"),
                        "404": _error("User not found"),
                    },
                },
            },
        },
        "components": {"schemas": _components()},
    }


def build_api_info(config: ServiceConfig) -> Dict[str, Any]:
    return {
        "message": f"Welcome to the {_API_TITLE}",
        "version": config.version,
        "endpoints": {
            "docs": "/api/v1/docs",
            "users": "/api/v1/users",
            "health": "/health",
        },
    }


__all__ = ["build_api_info", "build_openapi_document"]
