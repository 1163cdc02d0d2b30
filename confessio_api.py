"""
Confessio Flask API — v1.0.0

REST surface over the confessional services:
- Drafts (active confessions), confession records, completion and deletion
- Transcript analysis and the pastoral chat / speech endpoints
- Profiles, feedback, donations and admin statistics

Every error is returned as a JSON envelope, never an HTML page:
    {"ok": false, "error": "<code>", "message": "..."}
"""

import hmac
import logging
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from confessional.errors import ConfessionalError, InvalidArgument
from confessional.models import parse_messages
from confessional.services import Services, build_services
from confessional.utils.kv_store import KVError
from system.config import AppConfig, configure_logging, load_env


logger = logging.getLogger("confessio.api")

api = Blueprint("api", __name__, url_prefix="/api")


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def _services() -> Services:
    return current_app.extensions["confessio"]


def _json_body() -> Dict[str, Any]:
    """Request body as a dict; a malformed body is an InvalidArgument."""
    if not request.data:
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid JSON in request body")
    return data


def _error(code: str, message: str, status: int):
    return jsonify({"ok": False, "error": code, "message": message}), status


def _require_admin() -> None:
    token = current_app.config["CONFESSIO"].admin_token
    if not token:
        return
    header = request.headers.get("Authorization", "")
    supplied = header[7:] if header.lower().startswith("bearer ") else ""
    if not hmac.compare_digest(supplied, token):
        raise _AdminAuthError()


class _AdminAuthError(ConfessionalError):
    status_code = 401
    code = "unauthorized"

    def __init__(self):
        super().__init__("Missing or invalid admin token")


# ─────────────────────────────────────────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/health")
def health():
    services = _services()
    return jsonify({
        "status": "ok",
        "kv": services.kv.ping(),
        "llm": services.llm_client is not None,
    })


# ─────────────────────────────────────────────────────────────────────────────
# DRAFTS
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/confessions/active")
def get_active_confession():
    draft = _services().confessions.get_active(request.args.get("userId"))
    return jsonify({"confession": draft.to_dict() if draft else None})


@api.post("/confessions/active")
def save_active_confession():
    """Auto-save after each exchange. Body: {userId, messages}"""
    data = _json_body()
    _services().confessions.save_active(data.get("userId"), data.get("messages"))
    return jsonify({"success": True})


@api.delete("/confessions/active")
def delete_active_confession():
    _services().confessions.delete_active(request.args.get("userId"))
    return jsonify({"success": True})


# ─────────────────────────────────────────────────────────────────────────────
# CONFESSIONS
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/confessions")
def list_confessions():
    confessions = _services().confessions.list_for_user(request.args.get("userId"))
    return jsonify([c.to_dict() for c in confessions])


@api.get("/confessions/check-limit")
def check_confession_limit():
    return jsonify(_services().confessions.check_limit(request.args.get("userId")))


@api.post("/confessions")
def create_confession():
    """Body: {userId, messages, karmaChange?, summary?, reasoning?}"""
    data = _json_body()
    confession = _services().confessions.create(
        data.get("userId"),
        data.get("messages"),
        karma_change=data.get("karmaChange") or 0,
        summary=data.get("summary") or "",
        reasoning=data.get("reasoning") or "",
    )
    return jsonify(confession.to_dict())


@api.post("/confessions/analyze")
def analyze_confession():
    """
    Score a transcript. Always answers with a score: the keyword
    fallback covers any LLM failure.
    """
    data = _json_body()
    messages = parse_messages(data.get("messages"), allow_empty=False)
    result = _services().analyzer.analyze(messages)
    return jsonify(result.to_dict())


@api.post("/confessions/finalize")
def finalize_confession():
    """Analyze, store and complete in one request. Body: {userId, messages}"""
    data = _json_body()
    confession, new_karma, analysis = _services().confessions.finalize(
        data.get("userId"), data.get("messages")
    )
    return jsonify({
        "confession": confession.to_dict(),
        "newKarma": new_karma,
        "analysis": analysis.to_dict(),
    })


@api.put("/confessions/<confession_id>/complete")
def complete_confession(confession_id: str):
    data = _json_body()
    confession, new_karma = _services().confessions.complete(
        confession_id, data.get("karmaChange")
    )
    return jsonify({"confession": confession.to_dict(), "newKarma": new_karma})


@api.get("/confession/<confession_id>")
def get_confession(confession_id: str):
    return jsonify(_services().confessions.get(confession_id).to_dict())


@api.delete("/confessions/<confession_id>")
def delete_confession(confession_id: str):
    _services().confessions.delete(confession_id)
    return jsonify({"success": True, "message": "Confession deleted"})


@api.delete("/confessions/user/<user_id>")
def delete_all_confessions(user_id: str):
    count = _services().confessions.delete_all(user_id)
    return jsonify({
        "success": True,
        "message": "All confessions deleted",
        "deletedCount": count,
    })


# ─────────────────────────────────────────────────────────────────────────────
# PROFILE
# ─────────────────────────────────────────────────────────────────────────────

@api.get("/profile/<user_id>")
def get_profile(user_id: str):
    profiles = _services().profiles
    profile = profiles.find(user_id)
    if profile is None:
        return jsonify(profiles.default_profile(user_id).to_dict()), 404
    return jsonify(profile.to_dict())


@api.put("/profile/<user_id>")
def update_profile(user_id: str):
    profile = _services().profiles.update(user_id, _json_body())
    return jsonify(profile.to_dict())


# ─────────────────────────────────────────────────────────────────────────────
# CHAT & SPEECH
# ─────────────────────────────────────────────────────────────────────────────

@api.post("/chat/response")
def chat_response():
    """Body: {userMessage, messages?}"""
    data = _json_body()
    raw_history = data.get("messages")
    history = parse_messages(raw_history) if raw_history is not None else []
    text = _services().guide.reply(data.get("userMessage") or "", history)
    return jsonify({"response": text})


@api.post("/chat/speak")
def chat_speak():
    data = _json_body()
    return jsonify({"audio": _services().guide.speak(data.get("text") or "")})


# ─────────────────────────────────────────────────────────────────────────────
# FEEDBACK
# ─────────────────────────────────────────────────────────────────────────────

@api.post("/feedback")
def submit_feedback():
    feedback = _services().feedback.submit(_json_body())
    return jsonify({"success": True, "feedback": feedback.to_dict()})


@api.get("/admin/feedback")
def list_feedback():
    _require_admin()
    return jsonify({"feedback": [f.to_dict() for f in _services().feedback.list_all()]})


@api.put("/admin/feedback/<feedback_id>")
def update_feedback(feedback_id: str):
    _require_admin()
    feedback = _services().feedback.update_status(feedback_id, _json_body().get("status"))
    return jsonify({"success": True, "feedback": feedback.to_dict()})


@api.delete("/admin/feedback/<feedback_id>")
def delete_feedback(feedback_id: str):
    _require_admin()
    _services().feedback.delete(feedback_id)
    return jsonify({"success": True, "message": "Feedback deleted"})


# ─────────────────────────────────────────────────────────────────────────────
# DONATIONS & ADMIN
# ─────────────────────────────────────────────────────────────────────────────

@api.post("/donations")
def record_donation():
    data = _json_body()
    donation, total = _services().donations.record(data.get("userId"), data.get("amount"))
    return jsonify({"success": True, "donation": donation.to_dict(), "totalDonations": total})


@api.get("/admin/users")
def admin_users():
    _require_admin()
    return jsonify({"users": _services().admin.list_users()})


# ─────────────────────────────────────────────────────────────────────────────
# GLOBAL ERROR HANDLERS: JSON responses, never HTML
# ─────────────────────────────────────────────────────────────────────────────

def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(ConfessionalError)
    def handle_service_error(e: ConfessionalError):
        if e.status_code >= 500:
            logger.error("%s on %s %s: %s", type(e).__name__, request.method, request.path, e)
        else:
            logger.info("%s on %s %s: %s", type(e).__name__, request.method, request.path, e)
        return _error(e.code, str(e), e.status_code)

    @app.errorhandler(KVError)
    def handle_storage_error(e: KVError):
        logger.error("Storage failure on %s %s: %s", request.method, request.path, e)
        return _error("storage_error", "Storage is unavailable. Please try again.", 500)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        code = (e.name or "error").lower().replace(" ", "_")
        return _error(code, e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_exception(e: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.path)
        return _error("server_error", "An unexpected server error occurred.", 500)


# ─────────────────────────────────────────────────────────────────────────────
# APP FACTORY
# ─────────────────────────────────────────────────────────────────────────────

def create_app(
    config: Optional[AppConfig] = None,
    services: Optional[Services] = None,
) -> Flask:
    """
    Build the Flask app.

    Args:
        config: settings; read from the environment (after .env) if omitted
        services: pre-built services (tests); built from config if omitted
    """
    if config is None:
        load_env()
        config = AppConfig.from_env()
    configure_logging(config)

    app = Flask(__name__)
    app.config["CONFESSIO"] = config
    app.json.ensure_ascii = False

    CORS(app, resources={r"/api/*": {"origins": config.cors_origin_list()}})

    app.extensions["confessio"] = services or build_services(config)
    app.register_blueprint(api)
    _register_error_handlers(app)

    @app.after_request
    def log_request(response):
        logger.info("%s %s -> %s", request.method, request.path, response.status_code)
        return response

    logger.info(
        "Confessio API ready (env=%s, kv=%s, llm=%s)",
        config.env,
        config.kv_provider,
        "on" if app.extensions["confessio"].llm_client is not None else "fallback",
    )
    return app


__all__ = ["api", "create_app"]
