import datetime
from . import db

ROLES = ("admin", "medico", "investigador", "paciente")

class Usuario(db.Model):
    __tablename__ = "usuarios"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password = db.Column(db.String(255))
    tipo_usuario = db.Column(db.String(20), nullable=False, default="paciente")
    nombre_completo = db.Column(db.String(200))
    # unique admite varios NULL: las cuentas importadas pueden no tener email
    email = db.Column(db.String(150), unique=True)
    fecha_registro = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    paciente = db.relationship("Paciente", backref="usuario", uselist=False, lazy=True)

class Paciente(db.Model):
    __tablename__ = "pacientes"

    id = db.Column(db.Integer, primary_key=True)
    usuario_id = db.Column(db.Integer, db.ForeignKey("usuarios.id"), nullable=True)
    historial_clinico = db.Column(db.Text)
    grupo_sanguineo = db.Column(db.String(10))
    alergias = db.Column(db.Text)
    enfermedades_cronicas = db.Column(db.Text)
    medicamentos_actuales = db.Column(db.Text)
    contacto_emergencia = db.Column(db.String(150))
    telefono_emergencia = db.Column(db.String(30))

class EnsayoClinico(db.Model):
    __tablename__ = "ensayos_clinicos"

    id = db.Column(db.Integer, primary_key=True)
    titulo = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    fecha_inicio = db.Column(db.Date)
    fecha_fin = db.Column(db.Date)
    estado = db.Column(db.String(20), nullable=False, default="activo")
    usuario_id = db.Column(db.Integer, db.ForeignKey("usuarios.id"), nullable=True)
    creado_en = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    creador = db.relationship("Usuario", lazy=True)
