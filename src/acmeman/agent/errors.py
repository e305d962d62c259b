"""JSON error responses for the agent service."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)


class AgentProblem(Exception):
    """An error that renders itself as a JSON response.

    Parameters
    ----------
    error:
        Short machine-readable error code (``"unauthorized"``).
    detail:
        Human-readable explanation.
    status:
        HTTP status code (default 400).

    """

    def __init__(self, error: str, detail: str, status: int = 400) -> None:
        self.error = error
        self.detail = detail
        self.status = status
        super().__init__(detail)

    def to_response(self):
        resp = jsonify({"error": self.error, "detail": self.detail})
        resp.status_code = self.status
        resp.headers["Cache-Control"] = "no-store"
        return resp


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AgentProblem)
    def _handle_problem(exc: AgentProblem):
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        name = (exc.name or "error").lower().replace(" ", "_")
        problem = AgentProblem(name, exc.description or "An error occurred", exc.code or 500)
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        log.exception("Unhandled exception during request")
        problem = AgentProblem("server_error", "An unexpected internal error occurred", 500)
        return problem.to_response()
