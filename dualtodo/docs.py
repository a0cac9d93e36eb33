"""Static OpenAPI description of the JSON API plus a Swagger UI page."""
from __future__ import annotations

from flask import Blueprint, jsonify, request

docs_bp = Blueprint("docs", __name__)

SWAGGER_UI_VERSION = "5.17.14"

SCHEMAS = {
    "Task": {
        "type": "object",
        "required": ["title"],
        "properties": {
            "_id": {"type": "string", "description": "MongoDB task ID", "example": "507f1f77bcf86cd799439011"},
            "title": {"type": "string", "description": "Task title", "example": "Buy bread"},
            "createdAt": {"type": "string", "format": "date-time", "description": "Creation date"},
        },
    },
    "TaskPg": {
        "type": "object",
        "required": ["title"],
        "properties": {
            "id": {"type": "integer", "description": "PostgreSQL task ID", "example": 1},
            "title": {"type": "string", "description": "Task title", "example": "Buy milk"},
            "created_at": {"type": "string", "format": "date-time", "description": "Creation date"},
        },
    },
    "TaskInput": {
        "type": "object",
        "required": ["title"],
        "properties": {"title": {"type": "string", "description": "Task title", "example": "My new task"}},
    },
    "User": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "username": {"type": "string"},
            "email": {"type": "string", "format": "email"},
            "oauth_provider": {"type": "string", "example": "local"},
            "store": {"type": "string", "enum": ["mongodb", "postgres"]},
        },
    },
    "Credentials": {
        "type": "object",
        "required": ["email", "password"],
        "properties": {
            "email": {"type": "string", "format": "email"},
            "password": {"type": "string", "format": "password"},
        },
    },
    "Registration": {
        "type": "object",
        "required": ["username", "email", "password"],
        "properties": {
            "username": {"type": "string"},
            "email": {"type": "string", "format": "email"},
            "password": {"type": "string", "format": "password", "minLength": 6},
        },
    },
    "Error": {
        "type": "object",
        "properties": {"error": {"type": "string", "description": "Error message", "example": "An error occurred"}},
    },
}


def _ref(name):
    return {"$ref": f"#/components/schemas/{name}"}


def _json(schema, description):
    return {"description": description, "content": {"application/json": {"schema": schema}}}


def _error(description):
    return _json(_ref("Error"), description)


def _body(name):
    return {"required": True, "content": {"application/json": {"schema": _ref(name)}}}


def _task_paths(prefix, schema, store_label):
    tag = f"Tasks ({store_label})"
    listing = {"type": "object", "properties": {"tasks": {"type": "array", "items": _ref(schema)}}}
    single = {"type": "object", "properties": {"task": _ref(schema)}}
    removed = {"type": "object", "properties": {"message": {"type": "string"}, "task": _ref(schema)}}
    return {
        prefix: {
            "get": {
                "tags": [tag],
                "summary": f"List tasks stored in {store_label}",
                "responses": {"200": _json(listing, "Task list"), "500": _error("Store error")},
            },
            "post": {
                "tags": [tag],
                "summary": f"Create a task in {store_label}",
                "requestBody": _body("TaskInput"),
                "responses": {
                    "201": _json(single, "Task created"),
                    "400": _error("Title is required"),
                    "500": _error("Store error"),
                },
            },
        },
        f"{prefix}/{{id}}": {
            "delete": {
                "tags": [tag],
                "summary": f"Delete a task from {store_label}",
                "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                "responses": {
                    "200": _json(removed, "Task removed"),
                    "404": _error("Task not found"),
                    "500": _error("Store error"),
                },
            },
        },
    }


def _auth_paths():
    token_reply = {
        "type": "object",
        "properties": {"message": {"type": "string"}, "token": {"type": "string"}, "user": _ref("User")},
    }
    short_token = {
        "type": "object",
        "properties": {
            "message": {"type": "string"},
            "token": {"type": "string"},
            "expiresIn": {"type": "string", "example": "1h"},
            "user": _ref("User"),
        },
    }
    return {
        "/auth/register": {
            "post": {
                "tags": ["Auth"],
                "summary": "Register a user in the active stores",
                "requestBody": _body("Registration"),
                "responses": {
                    "201": _json(token_reply, "User registered"),
                    "400": _error("Validation error or user already exists"),
                    "429": _error("Too many attempts"),
                },
            },
        },
        "/auth/login": {
            "post": {
                "tags": ["Auth"],
                "summary": "Log in with email and password",
                "requestBody": _body("Credentials"),
                "responses": {
                    "200": _json(token_reply, "Login successful"),
                    "400": _error("Email and password are required"),
                    "401": _error("Invalid credentials"),
                    "429": _error("Too many attempts"),
                },
            },
        },
        "/auth/profile": {
            "get": {
                "tags": ["Auth"],
                "summary": "Current user",
                "security": [{"bearerAuth": []}],
                "responses": {
                    "200": _json({"type": "object", "properties": {"user": _ref("User")}}, "Profile"),
                    "401": _error("No token provided / Invalid or expired token"),
                    "404": _error("User not found"),
                },
            },
        },
        "/token/generate": {
            "post": {
                "tags": ["Token"],
                "summary": "Short-lived token for an existing user",
                "requestBody": _body("Credentials"),
                "responses": {
                    "200": _json(short_token, "Token generated"),
                    "401": _error("Invalid credentials"),
                    "429": _error("Token generation limit reached"),
                },
            },
        },
        "/token/user": {
            "post": {
                "tags": ["Token"],
                "summary": "Create a user and return a short-lived token",
                "requestBody": _body("Registration"),
                "responses": {
                    "201": _json(short_token, "User created"),
                    "400": _error("Validation error or user already exists"),
                    "429": _error("Too many attempts"),
                },
            },
        },
        "/oauth/google": {
            "get": {
                "tags": ["OAuth"],
                "summary": "Start Google sign-in",
                "parameters": [{
                    "name": "db", "in": "query", "required": False,
                    "schema": {"type": "string", "enum": ["mongodb", "postgres"]},
                }],
                "responses": {"302": {"description": "Redirect to Google"}},
            },
        },
        "/oauth/status": {
            "get": {
                "tags": ["OAuth"],
                "summary": "Whether the token cookie identifies a user",
                "responses": {"200": {"description": "Authentication status"}},
            },
        },
    }


def openapi_document(server_url=None):
    paths = {}
    paths.update(_task_paths("/tasks", "Task", "MongoDB"))
    paths.update(_task_paths("/tasks-pg", "TaskPg", "PostgreSQL"))
    paths.update(_auth_paths())
    return {
        "openapi": "3.0.0",
        "info": {
            "title": "Node Todo API",
            "version": "1.0.0",
            "description": "Task management API with MongoDB and PostgreSQL",
        },
        "servers": [{"url": server_url or "http://localhost:3000", "description": "Current server"}],
        "components": {
            "schemas": SCHEMAS,
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        },
        "paths": paths,
    }


SWAGGER_PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Todo API docs</title>
  <link rel="stylesheet" href="https://unpkg.com/swagger-ui-dist@{v}/swagger-ui.css">
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="https://unpkg.com/swagger-ui-dist@{v}/swagger-ui-bundle.js"></script>
  <script>window.ui = SwaggerUIBundle({{ url: "/api-docs.json", dom_id: "#swagger-ui" }});</script>
</body>
</html>
"""


@docs_bp.get("/api-docs.json")
def api_docs_json():
    return jsonify(openapi_document(request.url_root.rstrip("/"))), 200


@docs_bp.get("/api-docs")
def api_docs():
    return SWAGGER_PAGE.format(v=SWAGGER_UI_VERSION), 200, {"Content-Type": "text/html; charset=utf-8"}
