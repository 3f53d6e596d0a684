import logging
from flask import Blueprint, current_app, jsonify, redirect, request, session
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from .models import Usuario, ROLES
from .errors import AuthError, UsuarioNoEncontrado, SinCredencial, CredencialInvalida, db_error_message
from .guard import LOGIN_URL, Principal, current_principal
from .views import HOME_URL, Notice, render_notice
from . import db, bcrypt, limiter

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

REGISTRO_URL = "/registro.html"


def _form():
    return request.form if request.form else (request.get_json(silent=True) or {})


def find_by_identifier(identifier):
    return Usuario.query.filter(
        or_(Usuario.username == identifier, Usuario.email == identifier)
    ).first()


def verify_password(usuario, password):
    try:
        return bcrypt.check_password_hash(usuario.password, password)
    except ValueError as e:
        # Hash almacenado con formato no bcrypt
        if not current_app.config.get("ALLOW_PLAINTEXT_FALLBACK"):
            logger.error("Hash inválido para %s: %s", usuario.username, e)
            return False
        logger.warning("Comparando contraseña en texto plano para %s", usuario.username)
        return password == usuario.password


def authenticate(identifier, password):
    """
    Devuelve el usuario cuyas credenciales coinciden.
    Cada causa de fallo lanza su propia excepción para que el mensaje
    mostrado al usuario sea específico.
    """
    usuario = find_by_identifier(identifier)
    if usuario is None:
        raise UsuarioNoEncontrado()
    if not usuario.password:
        raise SinCredencial()
    if not verify_password(usuario, password or ""):
        raise CredencialInvalida()
    return usuario


def _login_notice(title, message):
    return Notice(title, message, LOGIN_URL, "Volver al Login")


@auth_bp.post("/login")
@limiter.limit(lambda: current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute"))
def login():
    data = _form()
    username = (data.get("username") or "").strip()
    logger.info("Intentando login para: %s", username)

    try:
        usuario = authenticate(username, data.get("password"))
    except AuthError as e:
        logger.info("Login rechazado para %s: %s", username, e.title)
        return render_notice(_login_notice(e.title, e.message))
    except SQLAlchemyError as e:
        logger.exception("Error en login")
        db.session.rollback()
        return render_notice(_login_notice("Error del Sistema", db_error_message(e)))

    principal = Principal.from_usuario(usuario)
    session.clear()
    session.permanent = True
    session["usuario"] = principal.to_session()
    logger.info("Login exitoso: %s (%s)", principal.username, principal.tipo)
    return redirect(HOME_URL)


@auth_bp.get("/logout")
def logout():
    session.clear()
    return redirect(LOGIN_URL)


@auth_bp.post("/registro")
def registro():
    data = _form()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    tipo_usuario = (data.get("tipo_usuario") or "").strip()
    nombre_completo = (data.get("nombre_completo") or "").strip() or None
    email = (data.get("email") or "").strip() or None

    if not username or not password:
        return render_notice(Notice(
            "Datos Incompletos",
            "El nombre de usuario y la contraseña son obligatorios.",
            REGISTRO_URL, "Volver al Registro",
        ))
    if tipo_usuario not in ROLES:
        return render_notice(Notice(
            "Tipo de Usuario Inválido",
            f"El tipo de usuario debe ser uno de: {', '.join(ROLES)}.",
            REGISTRO_URL, "Volver al Registro",
        ))

    try:
        filters = [Usuario.username == username]
        if email:
            filters.append(Usuario.email == email)
        if Usuario.query.filter(or_(*filters)).first():
            return render_notice(Notice(
                "Usuario Existente",
                "El nombre de usuario o email ya está registrado en el sistema.",
                REGISTRO_URL, "Volver al Registro",
            ))

        hashed_pw = bcrypt.generate_password_hash(password).decode("utf-8")
        db.session.add(Usuario(
            username=username,
            password=hashed_pw,
            tipo_usuario=tipo_usuario,
            nombre_completo=nombre_completo,
            email=email,
        ))
        db.session.commit()
    except SQLAlchemyError:
        logger.exception("Error en registro")
        db.session.rollback()
        return render_notice(Notice(
            "Error en Registro",
            "Hubo un problema al crear tu cuenta. Inténtalo nuevamente.",
            REGISTRO_URL, "Volver al Registro",
        ))

    logger.info("Usuario registrado: %s (%s)", username, tipo_usuario)
    return render_notice(Notice(
        "Registro Exitoso",
        "Tu cuenta ha sido creada exitosamente. Ahora puedes iniciar sesión.",
        LOGIN_URL, "Ir al Login",
    ))


@auth_bp.get("/api/session")
def api_session():
    principal = current_principal()
    if principal is None:
        return jsonify({"loggedIn": False})
    return jsonify({
        "loggedIn": True,
        "tipo": principal.tipo,
        "username": principal.username,
        "nombre": principal.nombre,
    })


@auth_bp.get("/auth/status")
def auth_status():
    principal = current_principal()
    if principal is None:
        return jsonify({"authenticated": False})
    return jsonify({"authenticated": True, "user": principal.to_session()})


@auth_bp.get("/tipo-usuario")
def tipo_usuario():
    principal = current_principal()
    return jsonify({"tipo_usuario": principal.tipo if principal else None})
