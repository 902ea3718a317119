"""Minimal deterministic OpenAPI spec builder.

Workflow paths are generated from the transition table and the role matrix so
the document cannot drift from the enforced rules:

- ``x-transitions`` on the Program schema lists every status in progress order
- each action path carries ``x-required-roles``, ``x-from-statuses`` and ``x-to-status``
"""
from typing import Any, Dict

from .constants.roles import ROLE_GRANTS, Action
from .domain.status import ORDERED_STATUSES, Status
from .workflow.engine import PAYLOAD_FIELDS, TRANSITIONS

__all__ = ["build_openapi_spec", "ACTION_PATHS"]

# action -> (path suffix, summary); PATCH/DELETE on the item cover edit/delete
ACTION_PATHS = {
    Action.SUBMIT: ("submit", "Submit a draft for finance review"),
    Action.QUERY: ("query", "Raise a finance query"),
    Action.ANSWER_QUERY: ("answer-query", "Answer the pending query"),
    Action.APPROVE: ("approve", "Approve with voucher and EFT numbers"),
    Action.REJECT: ("reject", "Reject with a reason"),
    Action.ACCEPT_DOCUMENT: ("accept-document", "MMK office accepts the documents"),
    Action.START_PAYMENT: ("start-payment", "Mark payment as started"),
    Action.COMPLETE_PAYMENT: ("complete-payment", "Mark payment as completed"),
    Action.DEDUCT_BUDGET: ("deduct-budget", "Record a budget deduction"),
    Action.REVERSE_DEDUCTION: ("reverse-deduction", "Reverse an earlier deduction"),
    Action.ADD_REMARK: ("remarks", "Add a finance remark"),
}

_ERRORS = {
    "400": {"$ref": "#/components/responses/ValidationFailed"},
    "403": {"$ref": "#/components/responses/Forbidden"},
    "404": {"description": "Not Found"},
    "409": {"$ref": "#/components/responses/Conflict"},
    "412": {"$ref": "#/components/responses/StaleSnapshot"},
}


def _roles_for(action: Action):
    return sorted(r.value for r, grants in ROLE_GRANTS.items() if action in grants)


def _transition_meta(action: Action) -> Dict[str, Any]:
    spec = TRANSITIONS[action]
    return {
        "x-required-roles": _roles_for(action),
        "x-from-statuses": sorted(s.value for s in spec.sources),
        "x-to-status": spec.target.value if spec.target is not None else None,
    }


def _body_schema(action: Action) -> Dict[str, Any]:
    fields = PAYLOAD_FIELDS.get(action, {})
    props = {name: ({"type": "string"} if name != "amount" else {"type": "string", "format": "decimal"})
             for name in fields}
    schema: Dict[str, Any] = {"type": "object", "properties": props}
    required = sorted(name for name, req in fields.items() if req)
    if required:
        schema["required"] = required
    return schema


def _if_match() -> Dict[str, Any]:
    return {"name": "If-Match", "in": "header", "required": False, "schema": {"type": "string"},
            "description": "Program version last seen; a mismatch returns 412"}


def build_openapi_spec() -> Dict[str, Any]:
    program_schema = {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "title": {"type": "string"},
            "budget": {"type": "string", "format": "decimal"},
            "status": {"type": "string", "enum": [s.value for s in Status]},
            "version": {"type": "string"},
            "queries": {"type": "array", "items": {"type": "object"}},
            "budgetDeductions": {"type": "array", "items": {"type": "object"}},
            "remarks": {"type": "array", "items": {"type": "object"}},
        },
        "x-transitions": [s.value for s in ORDERED_STATUSES] + [Status.REJECTED.value],
    }
    error_schema = {
        "type": "object",
        "properties": {"error": {"type": "object", "properties": {
            "status": {"type": "integer"}, "title": {"type": "string"}, "detail": {"type": "string"},
            "code": {"type": "string"}, "field": {"type": "string"},
        }}},
        "required": ["error"],
    }

    def _err(desc: str):
        return {"description": desc, "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}}}

    components: Dict[str, Any] = {
        "schemas": {
            "Program": program_schema,
            "Error": error_schema,
            "Pagination": {
                "type": "object",
                "properties": {k: {"type": "integer"} for k in ("total", "limit", "offset", "returned")},
                "required": ["total", "limit", "offset", "returned"],
            },
        },
        "responses": {
            "ValidationFailed": _err("Payload missing or invalid (names the field)"),
            "Forbidden": _err("You are not allowed to do this"),
            "Conflict": _err("This program is not in a state that allows this action"),
            "StaleSnapshot": _err("Program was modified concurrently"),
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
            "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
            "ProgramSortParam": {
                "name": "sort", "in": "query", "schema": {"type": "string"},
                "description": "Comma separated fields, '-' prefix for descending (title,budget,status,updated_at,...)",
            },
        },
    }

    program_ref = {"$ref": "#/components/schemas/Program"}
    ok_program = {"description": "OK", "content": {"application/json": {"schema": program_ref}}}
    id_param = {"name": "program_id", "in": "path", "required": True, "schema": {"type": "integer"}}

    paths: Dict[str, Any] = {
        "/iam/auth/login": {"post": {"summary": "Login", "responses": {"200": {"description": "JWT issued"}}}},
        "/iam/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
        "/iam/users": {
            "get": {"summary": "List users", "x-required-roles": ["admin", "super_admin"],
                    "responses": {"200": {"description": "OK"}}},
            "post": {"summary": "Create user", "x-required-roles": ["admin", "super_admin"],
                     "responses": {"201": {"description": "Created"}}},
        },
        "/programs": {
            "get": {
                "summary": "List programs (all for finance/admin, own for EXCO users)",
                "parameters": [
                    {"$ref": "#/components/parameters/LimitParam"},
                    {"$ref": "#/components/parameters/OffsetParam"},
                    {"$ref": "#/components/parameters/ProgramSortParam"},
                    {"name": "status", "in": "query", "schema": {"type": "string"}},
                    {"name": "department", "in": "query", "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "OK", "headers": {"ETag": {"schema": {"type": "string"}}}},
                              "304": {"description": "Not Modified"}},
            },
            "post": {"summary": "Create a draft program", "x-required-roles": _roles_for(Action.CREATE),
                     "responses": {"201": ok_program, "400": _ERRORS["400"], "403": _ERRORS["403"]}},
        },
        "/programs/statuses": {"get": {"summary": "Status labels and tones",
                                       "responses": {"200": {"description": "OK"}}}},
        "/programs/stats": {"get": {"summary": "Dashboard totals", "responses": {"200": {"description": "OK"}}}},
        "/programs/queries": {"get": {
            "summary": "Query inbox (all programs for finance/admin, own for EXCO users)",
            "parameters": [
                {"$ref": "#/components/parameters/LimitParam"},
                {"$ref": "#/components/parameters/OffsetParam"},
                {"name": "status", "in": "query", "schema": {"type": "string", "enum": ["pending", "answered"]}},
                {"name": "program_id", "in": "query", "schema": {"type": "integer"}},
            ],
            "responses": {"200": {"description": "OK"}, "304": {"description": "Not Modified"}},
        }},
        "/programs/{program_id}": {
            "parameters": [id_param],
            "get": {"summary": "Program detail", "responses": {"200": ok_program, "304": {"description": "Not Modified"},
                                                                "403": _ERRORS["403"], "404": _ERRORS["404"]}},
            "patch": {"summary": "Edit program fields", "parameters": [_if_match()], **_transition_meta(Action.EDIT),
                      "responses": {"200": ok_program, **_ERRORS}},
            "delete": {"summary": "Delete a draft", "parameters": [_if_match()], **_transition_meta(Action.DELETE),
                       "responses": {"204": {"description": "Deleted"}, **_ERRORS}},
        },
        "/programs/{program_id}/timeline": {"parameters": [id_param], "get": {
            "summary": "Status timeline", "responses": {"200": {"description": "OK"}}}},
        "/programs/{program_id}/budget": {"parameters": [id_param], "get": {
            "summary": "Budget summary and deduction ledger", "responses": {"200": {"description": "OK"}}}},
        "/programs/{program_id}/documents/history": {"parameters": [id_param], "get": {
            "summary": "Every uploaded document version, newest first per category",
            "parameters": [{"name": "category", "in": "query", "schema": {"type": "string"}}],
            "responses": {"200": {"description": "OK"}, "400": _ERRORS["400"]}}},
    }

    for action, (suffix, summary) in ACTION_PATHS.items():
        op = {
            "summary": summary,
            "operationId": action.value,
            "parameters": [_if_match()],
            **_transition_meta(action),
            "responses": {"200": ok_program, **_ERRORS},
        }
        if action in PAYLOAD_FIELDS:
            op["requestBody"] = {"required": True, "content": {"application/json": {"schema": _body_schema(action)}}}
        paths[f"/programs/{{program_id}}/{suffix}"] = {"parameters": [id_param], "post": op}

    return {
        "openapi": "3.0.3",
        "info": {"title": "EXCO Program Workflow API", "version": "1.0.0"},
        "servers": [{"url": "/"}],
        "security": [{"BearerAuth": []}],
        "components": components,
        "paths": paths,
    }
