import logging
from flask import jsonify, request
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError
from werkzeug.exceptions import InternalServerError, RequestEntityTooLarge
from .views import Notice, render_notice
from . import db

logger = logging.getLogger(__name__)

# Rutas que responden JSON; el resto sirve páginas HTML
JSON_PREFIXES = (
    "/api/", "/buscar-pacientes", "/paciente/",
    "/upload-excel", "/download-excel", "/auth/status", "/tipo-usuario",
)


class AuthError(Exception):
    """Fallo de autenticación con título y mensaje para el usuario."""
    title = "Error de Autenticación"
    message = "No fue posible iniciar sesión."


class UsuarioNoEncontrado(AuthError):
    title = "Usuario No Encontrado"
    message = "El nombre de usuario o email no está registrado en el sistema."


class SinCredencial(AuthError):
    title = "Error de Configuración"
    message = "Este usuario no tiene contraseña configurada. Contacta al administrador."


class CredencialInvalida(AuthError):
    title = "Contraseña Incorrecta"
    message = "La contraseña ingresada no es válida."


class ArchivoInvalido(Exception):
    """El archivo subido no es una hoja de cálculo utilizable."""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


def db_error_message(exc):
    """Mensaje para el usuario final ante un fallo de la base de datos."""
    text = str(getattr(exc, "orig", exc)).lower()
    if "no such table" in text or "doesn't exist" in text or "does not exist" in text:
        return "La tabla de usuarios no existe"
    if isinstance(exc, (OperationalError, ProgrammingError)):
        return "Error de acceso a la base de datos"
    return "Error en el servidor"


def register_error_handlers(app):
    @app.errorhandler(ArchivoInvalido)
    def handle_invalid_file(e):
        body = {"error": e.message}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        limit = app.config.get("MAX_CONTENT_LENGTH") or 0
        return jsonify({
            "error": "El archivo excede el tamaño máximo permitido",
            "details": f"Máximo {limit // (1024 * 1024)}MB",
        }), 413

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        logger.exception("Error de base de datos en %s", request.path)
        db.session.rollback()
        return server_error_response("Error del sistema", db_error_message(e))

    @app.errorhandler(InternalServerError)
    def handle_unexpected(e):
        original = e.original_exception or e
        logger.error("Error no controlado en %s: %r", request.path, original)
        db.session.rollback()
        if request.endpoint == "excel.upload_excel":
            message = "Error al procesar el archivo Excel"
        else:
            message = "Error del sistema"
        return server_error_response(message, str(original))


def wants_json():
    return request.path.startswith(JSON_PREFIXES)


def server_error_response(message, details):
    if wants_json():
        return jsonify({"error": message, "details": details}), 500
    return render_notice(Notice("Error del Sistema", details), 500)
