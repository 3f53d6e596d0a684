import click
from .models import Usuario
from . import db, bcrypt

DEMO_USUARIOS = [
    {"username": "admin", "password": "admin123", "tipo": "admin",
     "nombre": "Administrador", "email": "admin@hospital.com"},
    {"username": "doctor", "password": "doctor123", "tipo": "medico",
     "nombre": "Dr. Juan Pérez", "email": "doctor@hospital.com"},
    {"username": "paciente", "password": "paciente123", "tipo": "paciente",
     "nombre": "María González", "email": "maria@email.com"},
    {"username": "emiliano", "password": "emiliano123", "tipo": "admin",
     "nombre": "Emiliano Rodriguez", "email": "emiliano@gmail.com"},
]


def seed_usuarios():
    """Crea los usuarios de demostración que falten. Idempotente."""
    creados = []
    for u in DEMO_USUARIOS:
        if Usuario.query.filter_by(username=u["username"]).first():
            continue
        db.session.add(Usuario(
            username=u["username"],
            password=bcrypt.generate_password_hash(u["password"]).decode("utf-8"),
            tipo_usuario=u["tipo"],
            nombre_completo=u["nombre"],
            email=u["email"],
        ))
        creados.append(u["username"])
    db.session.commit()
    return creados


def register_commands(app):
    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, help="Elimina las tablas antes de crearlas.")
    def init_db(drop):
        """Crea las tablas del sistema."""
        if drop:
            db.drop_all()
        db.create_all()
        click.echo("Tablas creadas con éxito.")

    @app.cli.command("seed-usuarios")
    def seed_usuarios_command():
        """Crea los usuarios de demostración."""
        creados = seed_usuarios()
        if creados:
            click.echo(f"Usuarios creados: {', '.join(creados)}")
        else:
            click.echo("Los usuarios de demostración ya existen.")
