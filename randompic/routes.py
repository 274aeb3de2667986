from flask import Blueprint, Response, current_app, jsonify, request, send_from_directory

from .delivery import RecordingSession
from .errors import DirectoryCreateFailed, UnknownCommand
from .service import CommandService

bp = Blueprint("randompic", __name__)


def service() -> CommandService:
    return current_app.extensions["randompic"].service


@bp.errorhandler(UnknownCommand)
def unknown_command(exc: UnknownCommand) -> Response:
    return jsonify({"error": str(exc)}), 404


@bp.route("/commands")
def list_commands() -> Response:
    return jsonify(service().list_commands())


@bp.route("/commands/<name>")
def run_command(name: str) -> Response:
    svc = service()
    session = RecordingSession()
    svc.run(name, request.args.get("count"), session)
    return jsonify({"command": name, "messages": session.messages})


@bp.route("/commands/<name>/refresh", methods=["POST"])
def refresh_command(name: str) -> Response:
    cache = service().cache
    try:
        cache.refresh(name)
    except DirectoryCreateFailed as exc:
        return jsonify({"error": str(exc), "paths": exc.paths}), 500
    return jsonify({"command": name, "files": len(cache.get_files(name))})


@bp.route("/galleries/<path:filename>")
def gallery_file(filename: str) -> Response:
    return send_from_directory(service().cache.root, filename)
