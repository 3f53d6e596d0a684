import datetime
import logging
import time
import zipfile
from dataclasses import dataclass, field
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import or_
from .models import Usuario, Paciente
from .errors import ArchivoInvalido
from . import db

logger = logging.getLogger(__name__)

CREADO = "creado"
OMITIDO = "omitido"
ERROR = "error"

# Valores por defecto para columnas opcionales ausentes
DEFAULTS = {
    "grupo_sanguineo": "O+",
    "alergias": "No especificadas",
    "enfermedades_cronicas": "No especificadas",
    "medicamentos": "No especificados",
    "contacto_emergencia": "No especificado",
    "telefono_emergencia": "No especificado",
}
NOMBRE_POR_DEFECTO = "Paciente sin nombre"

# La fila 1 de la hoja es el encabezado
FIRST_DATA_ROW = 2


@dataclass
class RowOutcome:
    fila: int
    identidad: str
    estado: str
    motivo: str = None

    def to_dict(self):
        return {
            "fila": self.fila,
            "identidad": self.identidad,
            "estado": self.estado,
            "motivo": self.motivo,
        }


@dataclass
class ImportReport:
    outcomes: list = field(default_factory=list)

    @property
    def registros_exitosos(self):
        return sum(1 for o in self.outcomes if o.estado == CREADO)

    @property
    def errores(self):
        return [f"Fila {o.fila}: {o.motivo}" for o in self.outcomes if o.estado == ERROR]

    @property
    def omitidos(self):
        return [f"Fila {o.fila}: {o.motivo}" for o in self.outcomes if o.estado == OMITIDO]

    def to_dict(self):
        return {
            "success": True,
            "message": (
                f"Procesamiento completado: {self.registros_exitosos} registros exitosos, "
                f"{len(self.errores)} errores"
            ),
            "registrosProcesados": len(self.outcomes),
            "registrosExitosos": self.registros_exitosos,
            "errores": self.errores,
            "omitidos": self.omitidos,
            "resultados": [o.to_dict() for o in self.outcomes],
        }


def clean_row(raw):
    """Normaliza encabezados y descarta celdas vacías."""
    row = {}
    for key, value in (raw or {}).items():
        if key is None or value is None:
            continue
        text = str(value).strip()
        if text:
            row[str(key).strip().lower()] = text
    return row


def synthesize_identity(index):
    return f"paciente_{int(time.time() * 1000)}_{index}"


def find_existing(identity, email):
    filters = [Usuario.username == identity]
    if email:
        filters.append(Usuario.email == email)
    return Usuario.query.filter(or_(*filters)).first()


def reconcile_row(row, fila, password_hash):
    identity = row.get("usuario") or row.get("email") or synthesize_identity(fila - FIRST_DATA_ROW)
    email = row.get("email")

    if find_existing(identity, email) is not None:
        return RowOutcome(fila, identity, OMITIDO, f"Usuario {identity} ya existe")

    usuario = Usuario(
        username=identity,
        password=password_hash,
        tipo_usuario="paciente",
        email=email,
        nombre_completo=row.get("nombre") or NOMBRE_POR_DEFECTO,
    )
    db.session.add(usuario)
    db.session.flush()

    hoy = datetime.date.today().strftime("%d/%m/%Y")
    db.session.add(Paciente(
        usuario_id=usuario.id,
        historial_clinico=row.get("historial_clinico") or f"Importado desde Excel - {hoy}",
        grupo_sanguineo=row.get("grupo_sanguineo") or DEFAULTS["grupo_sanguineo"],
        alergias=row.get("alergias") or DEFAULTS["alergias"],
        enfermedades_cronicas=row.get("enfermedades_cronicas") or DEFAULTS["enfermedades_cronicas"],
        medicamentos_actuales=row.get("medicamentos") or DEFAULTS["medicamentos"],
        contacto_emergencia=row.get("contacto_emergencia") or DEFAULTS["contacto_emergencia"],
        telefono_emergencia=row.get("telefono_emergencia") or DEFAULTS["telefono_emergencia"],
    ))
    db.session.commit()
    return RowOutcome(fila, identity, CREADO)


def reconcile_rows(rows, password_hash):
    """Concilia cada fila y devuelve un resultado por fila, en orden."""
    report = ImportReport()
    for i, raw in enumerate(rows):
        fila = i + FIRST_DATA_ROW
        identity = None
        try:
            row = clean_row(raw)
            identity = row.get("usuario") or row.get("email")
            outcome = reconcile_row(row, fila, password_hash)
        except Exception as e:
            db.session.rollback()
            motivo = str(getattr(e, "orig", None) or e)
            logger.warning("Fila %d rechazada: %s", fila, motivo)
            outcome = RowOutcome(fila, identity or "", ERROR, motivo)
        report.outcomes.append(outcome)
    return report


# En modo read_only la hoja se parsea al iterar, no al abrir el libro.
# ParseError de ElementTree y de lxml derivan de SyntaxError.
UNREADABLE_ERRORS = (
    InvalidFileException, zipfile.BadZipFile, SyntaxError,
    OSError, KeyError, ValueError, IndexError,
)


def _sheet_rows(sheet):
    values = sheet.iter_rows(values_only=True)
    header = next(values, None)
    if not header:
        return []
    columns = [str(h).strip() if h is not None else None for h in header]
    rows = []
    for cells in values:
        if all(c is None or str(c).strip() == "" for c in cells):
            continue
        rows.append({col: cell for col, cell in zip(columns, cells) if col})
    return rows


def read_rows(path):
    """Lee la primera hoja del libro como una lista de diccionarios."""
    workbook = None
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
        return _sheet_rows(workbook.worksheets[0])
    except UNREADABLE_ERRORS as e:
        raise ArchivoInvalido("No se pudo leer el archivo Excel", str(e))
    finally:
        if workbook is not None:
            workbook.close()
