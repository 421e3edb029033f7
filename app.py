import asyncio
import io
import json
import logging
import os
from functools import wraps

from flask import Blueprint, Flask, current_app, jsonify, request, send_file, session
from werkzeug.utils import secure_filename

import hall_ticket_generator as htg
from assets import format_from_filename, format_from_tag, load_logo_assets, load_photo_store, sniff_format
from customization import apply_template, dump_customization, load_customization, resolve_customization
from models import ClassExamMetadata, HallTicketError, Roster, RosterKind
from roster_handler import collect_manual_entries, export_roster, read_roster_file
from schedule import expand_subject_slots, merge_schedule, schedule_from_records

logger = logging.getLogger(__name__)

ROSTER_FILE = "roster.json"
CLASS_INFO_FILE = "class_info.json"
CUSTOMIZATION_FILE = "customization.json"
PHOTO_FOLDER = "photos"
LOGO_FOLDER = "logos"
LOGO_KINDS = ("primary", "secondary")

# Default user credentials (can be overridden by the environment)
DEFAULT_USERS = {
    "admin": "admin123",
}

bp = Blueprint("halltickets", __name__)


def get_session_folder():
    username = secure_filename(session.get("username", "default")) or "default"
    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], username)
    os.makedirs(folder, exist_ok=True)
    return folder


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if "username" not in session:
            return jsonify({"error": "Please log in to access this page."}), 401
        return f(*args, **kwargs)
    return decorated_function


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _read_json(name, default):
    path = os.path.join(get_session_folder(), name)
    if not os.path.exists(path):
        return default
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(name, data):
    path = os.path.join(get_session_folder(), name)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _load_roster():
    return Roster.from_dict(_read_json(ROSTER_FILE, {}))


def _save_roster(roster):
    _write_json(ROSTER_FILE, roster.to_dict())


def _logo_path(kind):
    folder = os.path.join(get_session_folder(), LOGO_FOLDER)
    if os.path.isdir(folder):
        for filename in sorted(os.listdir(folder)):
            if os.path.splitext(filename)[0] == kind:
                return os.path.join(folder, filename)
    return current_app.config.get(f"{kind.upper()}_LOGO_PATH")


async def _load_assets(photo_folder, primary_path, secondary_path):
    (photos, failures), logos = await asyncio.gather(
        load_photo_store(photo_folder), load_logo_assets(primary_path, secondary_path)
    )
    return photos, failures, logos


def _load_logos():
    return asyncio.run(load_logo_assets(_logo_path("primary"), _logo_path("secondary")))


def _load_context():
    folder = get_session_folder()
    photos, failures, logos = asyncio.run(
        _load_assets(os.path.join(folder, PHOTO_FOLDER), _logo_path("primary"), _logo_path("secondary"))
    )
    if failures:
        logger.warning(f"{len(failures)} photos could not be read and will show a placeholder")
    return htg.GenerationContext(
        roster=_load_roster(),
        metadata=ClassExamMetadata.from_dict(_read_json(CLASS_INFO_FILE, {})),
        customization=resolve_customization(_read_json(CUSTOMIZATION_FILE, {})),
        photo_lookup=photos.lookup,
        logo_lookup=logos.lookup,
    )


def _generation_options():
    data = _payload()
    try:
        mode = htg.DocumentMode(data.get("mode") or htg.DocumentMode.SAME_STUDENT.value)
    except ValueError:
        raise HallTicketError(f"Unknown generation mode: {data.get('mode')}") from None
    selection = data.get("selection")
    if isinstance(selection, str):
        try:
            selection = [int(part) for part in selection.split(",") if part.strip()]
        except ValueError:
            raise HallTicketError("Selection must be a list of student positions") from None
    return mode, selection


# ============================================================
# AUTH
# ============================================================
@bp.route("/login", methods=["POST"])
def login():
    data = _payload()
    username = data.get("username")
    password = data.get("password")
    users = current_app.config["USERS"]
    if username in users and users[username] == password:
        session["username"] = username
        logger.info(f"User {username} logged in")
        return jsonify({"message": "Logged in", "username": username})
    return jsonify({"error": "Invalid username or password."}), 401


@bp.route("/logout", methods=["POST"])
def logout():
    session.pop("username", None)
    return jsonify({"message": "You have been logged out."})


# ============================================================
# ROSTER / SCHEDULE / CLASS INFO
# ============================================================
@bp.route("/roster/upload", methods=["POST"])
@login_required
def upload_roster():
    file = request.files.get("file")
    if not file or not file.filename:
        return jsonify({"error": "Please select a file to upload."}), 400
    if not file.filename.lower().endswith((".xls", ".xlsx", ".csv")):
        return jsonify({"error": "Please upload an Excel (.xlsx, .xls) or CSV file."}), 400
    try:
        kind = RosterKind.parse(request.form.get("kind"))
    except ValueError:
        return jsonify({"error": f"Unknown roster kind: {request.form.get('kind')}"}), 400
    roster, report = read_roster_file(io.BytesIO(file.read()), kind, filename=file.filename)
    _save_roster(roster)
    return jsonify({
        "accepted": report.accepted,
        "skipped": report.skipped,
        "maxSubjects": report.max_subjects,
        "kind": roster.kind.value,
    })


@bp.route("/roster", methods=["GET", "POST"])
@login_required
def roster():
    if request.method == "GET":
        return jsonify(_load_roster().to_dict())
    data = request.get_json(silent=True) or {}
    try:
        new_roster, report = collect_manual_entries(data.get("students") or [], data.get("kind"))
    except ValueError:
        return jsonify({"error": f"Unknown roster kind: {data.get('kind')}"}), 400
    _save_roster(new_roster)
    return jsonify({"accepted": report.accepted, "skipped": report.skipped})


@bp.route("/roster/export", methods=["GET"])
@login_required
def export_roster_file():
    current = _load_roster()
    if not len(current):
        return jsonify({"error": "No student data to export!"}), 400
    path = os.path.join(get_session_folder(), "student_data.xlsx")
    export_roster(current, path)
    return send_file(path, as_attachment=True)


@bp.route("/schedule", methods=["POST"])
@login_required
def apply_schedule():
    data = request.get_json(silent=True) or {}
    entries = schedule_from_records(data.get("subjects") or [])
    if not entries:
        return jsonify({"error": "Please add at least one subject to apply."}), 400
    current = _load_roster()
    if not len(current):
        return jsonify({"error": "No student data available! Please add students first."}), 400
    merged = merge_schedule(expand_subject_slots(current, len(entries)), entries)
    _save_roster(merged)
    return jsonify({"students": len(merged), "subjects": len(entries)})


@bp.route("/class-info", methods=["GET", "POST"])
@login_required
def class_info():
    if request.method == "POST":
        metadata = ClassExamMetadata.from_dict(_payload())
        _write_json(CLASS_INFO_FILE, metadata.to_dict())
        return jsonify(metadata.to_dict())
    return jsonify(ClassExamMetadata.from_dict(_read_json(CLASS_INFO_FILE, {})).to_dict())


# ============================================================
# CUSTOMIZATION
# ============================================================
@bp.route("/customization", methods=["GET", "POST"])
@login_required
def customization():
    if request.method == "GET":
        settings = resolve_customization(_read_json(CUSTOMIZATION_FILE, {})).to_settings()
        if request.args.get("download"):
            return send_file(
                io.BytesIO(dump_customization(settings).encode("utf-8")),
                mimetype="application/json",
                as_attachment=True,
                download_name="hall-ticket-template.json",
            )
        return jsonify(settings)

    file = request.files.get("file")
    if file:
        try:
            settings = load_customization(file.read().decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            return jsonify({"error": f"Error loading template: {e}"}), 400
    else:
        settings = request.get_json(silent=True) or request.form.to_dict()
    resolved = resolve_customization(settings)
    _write_json(CUSTOMIZATION_FILE, resolved.to_settings())
    return jsonify(resolved.to_settings())


@bp.route("/customization/template/<name>", methods=["POST"])
@login_required
def apply_customization_template(name):
    try:
        settings = apply_template(name, _read_json(CUSTOMIZATION_FILE, {}))
    except KeyError:
        return jsonify({"error": f"Unknown template: {name}"}), 404
    info = _read_json(CLASS_INFO_FILE, {})
    info["institution_name"] = settings["institutionName"]
    info["exam_title"] = settings["examTitle"]
    _write_json(CLASS_INFO_FILE, ClassExamMetadata.from_dict(info).to_dict())
    resolved = resolve_customization(settings)
    _write_json(CUSTOMIZATION_FILE, resolved.to_settings())
    return jsonify(resolved.to_settings())


# ============================================================
# PHOTOS / LOGOS
# ============================================================
def _upload_format(file, data):
    return format_from_tag(file.mimetype) or format_from_filename(file.filename) or sniff_format(data)


@bp.route("/photos", methods=["POST"])
@login_required
def upload_photos():
    folder = os.path.join(get_session_folder(), PHOTO_FOLDER)
    os.makedirs(folder, exist_ok=True)
    index_path = os.path.join(folder, "index.json")
    index = {}
    if os.path.exists(index_path):
        with open(index_path, "r", encoding="utf-8") as f:
            index = json.load(f)
    saved, skipped = [], []
    for file in request.files.getlist("photos"):
        if not file or not file.filename:
            continue
        data = file.read()
        fmt = _upload_format(file, data)
        identifier = os.path.splitext(os.path.basename(file.filename))[0].strip()
        stem = secure_filename(identifier)
        if fmt is None or not stem:
            skipped.append(file.filename)
            continue
        filename = f"{stem}.{fmt.extension}"
        with open(os.path.join(folder, filename), "wb") as f:
            f.write(data)
        index[identifier] = filename
        saved.append(identifier)
    with open(index_path, "w", encoding="utf-8") as f:
        json.dump(index, f, indent=2)
    logger.info(f"Saved {len(saved)} photos ({len(skipped)} skipped)")
    return jsonify({"saved": saved, "skipped": skipped})


@bp.route("/logos/<kind>", methods=["POST"])
@login_required
def upload_logo(kind):
    if kind not in LOGO_KINDS:
        return jsonify({"error": f"Unknown logo kind: {kind}"}), 404
    file = request.files.get("logo")
    if not file or not file.filename:
        return jsonify({"error": "Please select a logo image."}), 400
    data = file.read()
    fmt = _upload_format(file, data)
    if fmt is None:
        return jsonify({"error": "Logo must be a JPEG, PNG, GIF or WEBP image."}), 400
    folder = os.path.join(get_session_folder(), LOGO_FOLDER)
    os.makedirs(folder, exist_ok=True)
    for filename in os.listdir(folder):
        if os.path.splitext(filename)[0] == kind:
            os.unlink(os.path.join(folder, filename))
    with open(os.path.join(folder, f"{kind}.{fmt.extension}"), "wb") as f:
        f.write(data)
    return jsonify({"kind": kind, "format": fmt.value})


# ============================================================
# GENERATION
# ============================================================
@bp.route("/generate", methods=["POST"])
@login_required
def generate():
    mode, selection = _generation_options()
    document = htg.render_document(_load_context(), mode, selection)
    return send_file(
        io.BytesIO(document.data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name="hall_tickets.pdf",
    )


@bp.route("/generate/archive", methods=["POST"])
@login_required
def generate_archive():
    mode, selection = _generation_options()
    data = htg.generate_ticket_archive(_load_context(), mode, selection)
    output_zip_path = os.path.join(get_session_folder(), "hall_tickets.zip")
    with open(output_zip_path, "wb") as f:
        f.write(data)
    logger.info(f"Created zip file: {output_zip_path}")
    return send_file(output_zip_path, as_attachment=True)


@bp.route("/preview", methods=["GET"])
@login_required
def preview():
    try:
        kind = RosterKind.parse(request.args.get("kind") or _load_roster().kind)
    except ValueError:
        return jsonify({"error": f"Unknown roster kind: {request.args.get('kind')}"}), 400
    # the sample student has no photo, so only the logos are read
    document = htg.preview_single(
        ClassExamMetadata.from_dict(_read_json(CLASS_INFO_FILE, {})),
        resolve_customization(_read_json(CUSTOMIZATION_FILE, {})),
        _load_logos().lookup,
        kind,
    )
    return send_file(io.BytesIO(document.data), mimetype="application/pdf", download_name="preview.pdf")


def handle_hall_ticket_error(error):
    return jsonify({"error": str(error)}), 400


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY", "my-fixed-secret-key-please-change"),
        USERS=json.loads(os.environ.get("USERS_CREDENTIALS", json.dumps(DEFAULT_USERS))),
        UPLOAD_FOLDER=os.environ.get("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads")),
        PRIMARY_LOGO_PATH=os.environ.get("PRIMARY_LOGO_PATH"),
        SECONDARY_LOGO_PATH=os.environ.get("SECONDARY_LOGO_PATH"),
        MAX_CONTENT_LENGTH=int(os.environ.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024)),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    app.register_blueprint(bp)
    app.register_error_handler(HallTicketError, handle_hall_ticket_error)
    return app


if __name__ == "__main__":
    create_app().run(debug=True, use_reloader=False)
