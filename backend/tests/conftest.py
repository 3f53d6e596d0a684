import io
import os
import pytest
from openpyxl import Workbook
from config import TestConfig
from biomedico import create_app, db
from biomedico.commands import seed_usuarios
from biomedico.models import Usuario, Paciente


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config.update(UPLOAD_FOLDER=str(tmp_path / "uploads"))

    with app.app_context():
        db.create_all()
        seed_usuarios()

        # Ficha del usuario "paciente" y de otro paciente ajeno
        propio = Usuario.query.filter_by(username="paciente").first()
        otro = Usuario(username="otro", password="x", tipo_usuario="paciente",
                       nombre_completo="Pedro Otro", email="otro@email.com")
        investigador = Usuario(username="invest", password="x", tipo_usuario="investigador",
                               nombre_completo="Ana Investigadora", email="ana@lab.com")
        db.session.add_all([otro, investigador])
        db.session.flush()
        db.session.add_all([
            Paciente(usuario_id=propio.id, historial_clinico="Hipertensión controlada",
                     grupo_sanguineo="A+"),
            Paciente(usuario_id=otro.id, historial_clinico="Asma leve",
                     grupo_sanguineo="B-"),
        ])
        db.session.commit()

    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_as(app, client):
    """Deja en la sesión del cliente al usuario indicado."""
    def _login(username):
        with app.app_context():
            u = Usuario.query.filter_by(username=username).first()
            data = {"id": u.id, "username": u.username, "tipo": u.tipo_usuario,
                    "nombre": u.nombre_completo}
        with client.session_transaction() as sess:
            sess["usuario"] = data
        return data
    return _login


@pytest.fixture
def upload_dir(app):
    return app.config["UPLOAD_FOLDER"]


def leftover_files(folder):
    return os.listdir(folder) if os.path.exists(folder) else []


def make_workbook(headers, rows):
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf
