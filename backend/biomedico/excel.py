import io
import os
import uuid
import logging
from flask import Blueprint, current_app, jsonify, request, send_file
from openpyxl import Workbook
from werkzeug.utils import secure_filename
from .models import Usuario, Paciente
from .errors import ArchivoInvalido
from .guard import role_required
from .importer import read_rows, reconcile_rows
from . import db, bcrypt

logger = logging.getLogger(__name__)

excel_bp = Blueprint("excel", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_COLUMNS = [
    ("paciente_id", Paciente.id),
    ("nombre", Usuario.nombre_completo),
    ("email", Usuario.email),
    ("username", Usuario.username),
    ("grupo_sanguineo", Paciente.grupo_sanguineo),
    ("alergias", Paciente.alergias),
    ("enfermedades_cronicas", Paciente.enfermedades_cronicas),
    ("medicamentos_actuales", Paciente.medicamentos_actuales),
    ("contacto_emergencia", Paciente.contacto_emergencia),
    ("telefono_emergencia", Paciente.telefono_emergencia),
    ("historial_clinico", Paciente.historial_clinico),
]


def allowed_file(file):
    allowed = current_app.config.get("ALLOWED_EXTENSIONS", set())
    mimetypes = current_app.config.get("ALLOWED_MIMETYPES", set())
    filename = file.filename or ""
    has_ext = "." in filename and filename.rsplit(".", 1)[1].lower() in allowed
    return has_ext or file.mimetype in mimetypes


def save_upload(file):
    """Guarda el archivo con un nombre único y devuelve su ruta."""
    upload_folder = current_app.config.get("UPLOAD_FOLDER")
    os.makedirs(upload_folder, exist_ok=True)
    ext = ""
    if "." in (file.filename or ""):
        ext = "." + file.filename.rsplit(".", 1)[1].lower()
    filename = secure_filename(f"{uuid.uuid4().hex}{ext or '.xlsx'}")
    file_path = os.path.join(upload_folder, filename)
    file.save(file_path)
    return file_path


@excel_bp.post("/upload-excel")
@role_required(["admin", "medico"], api=True)
def upload_excel(principal):
    file = request.files.get("excelFile")
    if file is None or file.filename == "":
        return jsonify({"error": "No se subió ningún archivo"}), 400
    if not allowed_file(file):
        raise ArchivoInvalido("Solo se permiten archivos Excel (.xlsx, .xls)")

    file_path = None
    try:
        file_path = save_upload(file)
        rows = read_rows(file_path)
        logger.info("Archivo Excel procesado por %s: %d registros encontrados", principal.username, len(rows))

        temp_password = current_app.config.get("IMPORT_TEMP_PASSWORD", "temp123")
        password_hash = bcrypt.generate_password_hash(temp_password).decode("utf-8")
        report = reconcile_rows(rows, password_hash)
    finally:
        # Temporal eliminado en todos los casos
        if file_path and os.path.exists(file_path):
            os.remove(file_path)

    logger.info(
        "Importación completada: %d exitosos, %d errores, %d omitidos",
        report.registros_exitosos, len(report.errores), len(report.omitidos),
    )
    return jsonify(report.to_dict()), 200


def export_workbook(rows):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Pacientes"
    sheet.append([name for name, _ in EXPORT_COLUMNS])
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    buffer.seek(0)
    return buffer


@excel_bp.get("/download-excel")
@role_required(["admin", "medico"], api=True)
def download_excel(principal):
    rows = (
        db.session.query(*[column for _, column in EXPORT_COLUMNS])
        .select_from(Paciente)
        .outerjoin(Usuario, Paciente.usuario_id == Usuario.id)
        .order_by(Paciente.id.desc())
        .all()
    )
    logger.info("Exportando %d pacientes para %s", len(rows), principal.username)
    return send_file(
        export_workbook(rows),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name="pacientes.xlsx",
    )
