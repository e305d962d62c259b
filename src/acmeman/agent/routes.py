"""Agent challenge API.

``PUT /challenges`` and ``DELETE /challenges?token=`` are called by the
orchestrator with the shared secret; ``GET /challenges/{token}`` and
``GET /.well-known/acme-challenge/{token}`` are fetched by the ACME
provider without credentials.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path

from flask import Blueprint, Response, current_app, g, jsonify, request

from acmeman.agent.errors import AgentProblem
from acmeman.core.auth import identify_by_api_key
from acmeman.core.types import Authority
from acmeman.services.keys import (
    CERTIFICATE_FILENAME,
    PRIVATE_KEY_FILENAME,
    write_private_file,
)

log = logging.getLogger(__name__)

agent_bp = Blueprint("agent", __name__)


def _ext() -> dict:
    return current_app.extensions["acmeman"]


def require_agent_admin(view):
    """Reject callers that did not present the agent's shared secret."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        settings = _ext()["settings"]
        caller = identify_by_api_key(
            request.headers.get(settings.api_key_header),
            settings.api_key,
            settings.name,
        )
        g.caller = caller
        if not caller.has(Authority.AGENT_ADMIN):
            raise AgentProblem("unauthorized", "Missing or invalid API key", 401)
        return view(*args, **kwargs)

    return wrapper


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise AgentProblem("malformed", "Request body must be a JSON object")
    return body


def _require_str(body: dict, key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value:
        raise AgentProblem("malformed", f"'{key}' must be a non-empty string")
    return value


def _plain(text: str) -> Response:
    return Response(text, status=200, mimetype="text/plain")


# ---------------------------------------------------------------------------
# Challenge management (authenticated)
# ---------------------------------------------------------------------------


@agent_bp.route("/challenges", methods=["PUT"])
@require_agent_admin
def put_challenge():
    body = _json_body()
    token = _require_str(body, "token")
    authorization = _require_str(body, "authorization")
    replaced = _ext()["store"].put(token, authorization)
    log.info("Stored challenge token %s%s", token, " (replaced)" if replaced else "")
    return jsonify({"token": token, "replaced": replaced}), 200


@agent_bp.route("/challenges", methods=["DELETE"])
@require_agent_admin
def delete_challenge():
    token = request.args.get("token", "")
    if not token:
        raise AgentProblem("malformed", "Query parameter 'token' is required")
    if not _ext()["store"].remove(token):
        raise AgentProblem("not_found", f"Unknown token {token}", 404)
    log.info("Removed challenge token %s", token)
    return "", 204


@agent_bp.route("/challenges", methods=["GET"])
@require_agent_admin
def list_challenges():
    return jsonify({"tokens": sorted(_ext()["store"].snapshot())})


# ---------------------------------------------------------------------------
# Challenge responses (unauthenticated)
# ---------------------------------------------------------------------------


def _serve_token(token: str) -> Response:
    authorization = _ext()["store"].get(token)
    if authorization is None:
        log.info("Challenge token %s requested but not stored", token)
        raise AgentProblem("not_found", f"Unknown token {token}", 404)
    return _plain(authorization)


@agent_bp.route("/challenges/<token>", methods=["GET"])
def get_challenge(token: str):
    return _serve_token(token)


@agent_bp.route("/.well-known/acme-challenge/<token>", methods=["GET"])
def acme_challenge(token: str):
    return _serve_token(token)


# ---------------------------------------------------------------------------
# Metadata / certificate installation
# ---------------------------------------------------------------------------


@agent_bp.route("/metadata", methods=["GET"])
def metadata():
    settings = _ext()["settings"]
    return jsonify({"name": settings.name, "version": settings.version})


@agent_bp.route("/certificate", methods=["PUT"])
@require_agent_admin
def install_certificate():
    """Write an issued chain and its private key into the certificate directory."""
    body = _json_body()
    certificate = _require_str(body, "certificate")
    private_key = _require_str(body, "private_key")

    directory = Path(_ext()["settings"].certificate_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / CERTIFICATE_FILENAME).write_text(certificate, encoding="ascii")
        write_private_file(directory / PRIVATE_KEY_FILENAME, private_key)
    except (OSError, UnicodeEncodeError) as exc:
        log.exception("Could not install certificate into %s", directory)
        raise AgentProblem("storage_error", f"Could not write certificate: {exc}", 500) from exc

    log.info("Installed certificate into %s", directory)
    return jsonify({"directory": str(directory)}), 200
