import datetime
import logging
from flask import Blueprint, jsonify, render_template, request
from sqlalchemy.exc import SQLAlchemyError
from .models import EnsayoClinico
from .guard import role_required
from .views import estado_class
from . import db

logger = logging.getLogger(__name__)

trials_bp = Blueprint("trials", __name__)

LECTURA = ["admin", "medico", "investigador"]
ESCRITURA = ["admin", "medico"]


def parse_date(value):
    """Fecha ISO (YYYY-MM-DD) o None."""
    if value in (None, ""):
        return None
    return datetime.date.fromisoformat(str(value))


def ensayo_to_dict(ensayo):
    creador = ensayo.creador
    return {
        "id": ensayo.id,
        "titulo": ensayo.titulo,
        "description": ensayo.description,
        "fecha_inicio": ensayo.fecha_inicio.isoformat() if ensayo.fecha_inicio else None,
        "fecha_fin": ensayo.fecha_fin.isoformat() if ensayo.fecha_fin else None,
        "estado": ensayo.estado,
        "usuario_id": ensayo.usuario_id,
        "creado_en": ensayo.creado_en.isoformat() if ensayo.creado_en else None,
        "creado_por": creador.username if creador else None,
        "nombre_completo": creador.nombre_completo if creador else None,
    }


def _listado():
    return EnsayoClinico.query.order_by(EnsayoClinico.creado_en.desc(), EnsayoClinico.id.desc()).all()


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def _titulo_valido(value):
    return isinstance(value, str) and value.strip() != ""


def _cuerpo_invalido():
    return jsonify({"error": "Cuerpo de la petición inválido"}), 400


@trials_bp.get("/api/ensayos")
@role_required(LECTURA, api=True)
def listar_ensayos(principal):
    return jsonify([ensayo_to_dict(e) for e in _listado()])


@trials_bp.post("/api/ensayos")
@role_required(ESCRITURA, api=True)
def crear_ensayo(principal):
    data = _payload()
    if not isinstance(data, dict):
        return _cuerpo_invalido()
    if not _titulo_valido(data.get("titulo")):
        return jsonify({"error": "El título es obligatorio"}), 400
    try:
        ensayo = EnsayoClinico(
            titulo=data["titulo"].strip(),
            description=data.get("description"),
            fecha_inicio=parse_date(data.get("fecha_inicio")),
            fecha_fin=parse_date(data.get("fecha_fin")),
            estado=data.get("estado") or "activo",
            usuario_id=principal.id,
        )
    except ValueError as e:
        return jsonify({"error": "Fecha inválida (YYYY-MM-DD)", "details": str(e)}), 400

    try:
        db.session.add(ensayo)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Error al crear ensayo")
        return jsonify({"error": "Error al crear ensayo", "details": str(e)}), 500

    logger.info("Ensayo %d creado por %s", ensayo.id, principal.username)
    return jsonify({
        "success": True,
        "message": "Ensayo creado exitosamente",
        "id": ensayo.id,
    }), 201


@trials_bp.put("/api/ensayos/<int:id>")
@role_required(ESCRITURA, api=True)
def actualizar_ensayo(principal, id):
    """Actualiza un ensayo (JSON parcial permitido)."""
    ensayo = db.session.get(EnsayoClinico, id)
    if ensayo is None:
        return jsonify({"error": "Ensayo no encontrado"}), 404

    data = _payload()
    if not isinstance(data, dict):
        return _cuerpo_invalido()
    try:
        if "titulo" in data:
            if not _titulo_valido(data["titulo"]):
                return jsonify({"error": "El título es obligatorio"}), 400
            ensayo.titulo = data["titulo"].strip()
        if "description" in data:
            ensayo.description = data["description"]
        if "fecha_inicio" in data:
            ensayo.fecha_inicio = parse_date(data["fecha_inicio"])
        if "fecha_fin" in data:
            ensayo.fecha_fin = parse_date(data["fecha_fin"])
        if data.get("estado"):
            ensayo.estado = data["estado"]
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "Fecha inválida (YYYY-MM-DD)", "details": str(e)}), 400

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Error al actualizar ensayo %d", id)
        return jsonify({"error": "Error al actualizar ensayo", "details": str(e)}), 500
    return jsonify({"success": True, "message": "Ensayo actualizado exitosamente"})


@trials_bp.delete("/api/ensayos/<int:id>")
@role_required("admin", api=True)
def eliminar_ensayo(principal, id):
    ensayo = db.session.get(EnsayoClinico, id)
    if ensayo is None:
        return jsonify({"error": "Ensayo no encontrado"}), 404
    try:
        db.session.delete(ensayo)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Error al eliminar ensayo %d", id)
        return jsonify({"error": "Error al eliminar ensayo", "details": str(e)}), 500

    logger.info("Ensayo %d eliminado por %s", id, principal.username)
    return jsonify({"success": True, "message": "Ensayo eliminado exitosamente"})


@trials_bp.get("/ensayos")
@role_required(LECTURA)
def ver_ensayos(principal):
    ensayos = []
    for e in _listado():
        data = ensayo_to_dict(e)
        data.update({
            "description": e.description or "Sin descripción",
            "fecha_inicio": data["fecha_inicio"] or "No definida",
            "fecha_fin": data["fecha_fin"] or "No definida",
            "creado_por": data["creado_por"] or "Desconocido",
            "estado_class": estado_class(e.estado),
        })
        ensayos.append(data)
    return render_template("ensayos.html", principal=principal, ensayos=ensayos)
