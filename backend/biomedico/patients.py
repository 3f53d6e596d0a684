import time
import logging
from flask import Blueprint, current_app, jsonify, render_template, request
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from .models import Usuario, Paciente
from .guard import ALL_ROLES, Decision, authorize_owner, deny_response, role_required
from .importer import DEFAULTS
from .views import Notice, render_notice, truncate
from . import db, bcrypt

logger = logging.getLogger(__name__)

patients_bp = Blueprint("patients", __name__)

SEARCH_LIMIT = 50
MAX_ID = 2**63 - 1


def paciente_to_dict(paciente, usuario):
    data = {
        "id": paciente.id,
        "usuario_id": paciente.usuario_id,
        "historial_clinico": paciente.historial_clinico,
        "grupo_sanguineo": paciente.grupo_sanguineo,
        "alergias": paciente.alergias,
        "enfermedades_cronicas": paciente.enfermedades_cronicas,
        "medicamentos_actuales": paciente.medicamentos_actuales,
        "contacto_emergencia": paciente.contacto_emergencia,
        "telefono_emergencia": paciente.telefono_emergencia,
        "nombre_completo": None,
        "username": None,
        "email": None,
        "tipo_usuario": None,
    }
    if usuario is not None:
        data.update({
            "nombre_completo": usuario.nombre_completo,
            "username": usuario.username,
            "email": usuario.email,
            "tipo_usuario": usuario.tipo_usuario,
        })
    return data


@patients_bp.get("/buscar-pacientes")
@role_required(ALL_ROLES, api=True)
def buscar_pacientes(principal):
    """
    Busca pacientes por nombre, usuario, email, historial o ID:
    /buscar-pacientes?q=maria
    Un paciente solo obtiene su propio registro.
    """
    q = (request.args.get("q") or "").strip()

    query = (
        db.session.query(Paciente, Usuario)
        .select_from(Paciente)
        .outerjoin(Usuario, Paciente.usuario_id == Usuario.id)
    )
    if q:
        term = f"%{q}%"
        conditions = [
            Usuario.nombre_completo.ilike(term),
            Usuario.username.ilike(term),
            Usuario.email.ilike(term),
            Paciente.historial_clinico.ilike(term),
        ]
        # isdecimal descarta dígitos como "²" que int() no acepta
        if q.isdecimal() and int(q) <= MAX_ID:
            conditions.append(Paciente.id == int(q))
        query = query.filter(or_(*conditions))
    if principal.tipo == "paciente":
        query = query.filter(Usuario.id == principal.id)

    results = query.order_by(Paciente.id.desc()).limit(SEARCH_LIMIT).all()
    return jsonify([
        {
            "id": p.id,
            "nombre": u.nombre_completo if u else None,
            "email": u.username if u else None,
            "historial_clinico": p.historial_clinico,
            "grupo_sanguineo": p.grupo_sanguineo,
        }
        for p, u in results
    ])


@patients_bp.get("/paciente/<int:id>")
@role_required(ALL_ROLES, api=True)
def obtener_paciente(principal, id):
    paciente = db.session.get(Paciente, id)
    if paciente is None:
        return jsonify({"error": "Paciente no encontrado"}), 404

    decision = authorize_owner(principal, ALL_ROLES, paciente.usuario_id)
    if decision is not Decision.ALLOW:
        logger.warning("%s intentó ver el paciente %d ajeno", principal.username, id)
        return deny_response(decision, principal, ALL_ROLES, api=True)

    usuario = db.session.get(Usuario, paciente.usuario_id) if paciente.usuario_id else None
    return jsonify(paciente_to_dict(paciente, usuario))


@patients_bp.post("/submit-data")
@role_required(["medico", "admin"])
def submit_data(principal):
    """Alta rápida de un paciente desde el formulario de la interfaz."""
    form = request.form
    name = (form.get("name") or "").strip()
    email = (form.get("email") or "").strip() or None

    try:
        temp_password = current_app.config.get("IMPORT_TEMP_PASSWORD", "temp123")
        usuario = Usuario(
            username=email or f"paciente_{int(time.time() * 1000)}",
            password=bcrypt.generate_password_hash(temp_password).decode("utf-8"),
            tipo_usuario="paciente",
            email=email,
            nombre_completo=name or "Paciente sin nombre",
        )
        db.session.add(usuario)
        db.session.flush()

        db.session.add(Paciente(
            usuario_id=usuario.id,
            historial_clinico=(
                f"Registro inicial - Nombre: {name}, Edad: {form.get('age', '')}, "
                f"Frecuencia cardíaca: {form.get('heart_rate', '')}"
            ),
            grupo_sanguineo=form.get("grupo_sanguineo") or DEFAULTS["grupo_sanguineo"],
            alergias=form.get("alergias") or DEFAULTS["alergias"],
            enfermedades_cronicas=form.get("enfermedades_cronicas") or DEFAULTS["enfermedades_cronicas"],
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Error al guardar paciente")
        return render_notice(Notice(
            "Error al Guardar",
            "Hubo un error al registrar el paciente: " + str(getattr(e, "orig", e)),
        ))

    logger.info("Paciente %s registrado por %s", usuario.username, principal.username)
    return render_notice(Notice(
        "Paciente Registrado",
        "El paciente ha sido registrado exitosamente en el sistema.",
    ))


@patients_bp.get("/ver-pacientes")
@role_required(["medico", "admin"])
def ver_pacientes(principal):
    results = (
        db.session.query(Paciente, Usuario)
        .select_from(Paciente)
        .outerjoin(Usuario, Paciente.usuario_id == Usuario.id)
        .order_by(Paciente.id.desc())
        .all()
    )
    pacientes = [
        {
            "id": p.id,
            "nombre": (u.nombre_completo if u else None) or "Sin nombre",
            "email": (u.email if u else None) or "No tiene email",
            "grupo_sanguineo": p.grupo_sanguineo or "No especificado",
            "historial": truncate(p.historial_clinico or "Sin historial"),
        }
        for p, u in results
    ]
    return render_template("pacientes.html", principal=principal, pacientes=pacientes)
