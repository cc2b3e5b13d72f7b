#!/usr/bin/env python3
"""
Reference Data Seed Script
Creates a receiving office with one bank, lawyer, court, sub-task type and
stamp template, plus a bank-wide fee, and prints a bearer token for it.

Usage:
    python -m scripts.seed_reference_data <office name> [signature.png] [seal.png]

Example:
    python -m scripts.seed_reference_data "Receptora Judicial Santiago" firma.png sello.png
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, engine, Base
from app.models.db_models import (
    BankDB, CourtDB, DocumentTypeDB, FeeEntryDB, LawyerBankDB, LawyerDB, OfficeDB, SubTaskTypeDB,
)
from app.auth import create_access_token

DEFAULT_TEMPLATE = (
    "En $tribunal, a $fecha_palabras_diligencia, siendo las $hora_diligencia horas, "
    "notifiqué a $nombre_ejecutado, RUT $rut_ejecutado, en su domicilio de "
    "$direccion_ejecutado, comuna de $solo_comuna_ejecutado, la demanda en causa "
    "ROL $rol, caratulada $caratula, por la suma de $cuantia.\n"
    "\n"
    "Doy fe.\n"
    "\n"
    "$firma $sello"
)


def read_image(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def seed(office_name: str, signature_path: str = None, seal_path: str = None) -> bool:
    """Create the office and its reference rows."""
    # Ensure tables exist
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        existing = db.query(OfficeDB).filter(OfficeDB.name == office_name).first()
        if existing:
            print(f"Error: Office '{office_name}' already exists ({existing.id}).")
            return False

        office = OfficeDB(
            id=str(uuid4()),
            name=office_name,
            signature_image=read_image(signature_path) if signature_path else None,
            seal_image=read_image(seal_path) if seal_path else None,
        )
        bank = BankDB(id=str(uuid4()), office_id=office.id, name="Banco de Ejemplo")
        lawyer = LawyerDB(id=str(uuid4()), office_id=office.id, name="Abogado de Ejemplo",
                          address="Huérfanos 1234, Santiago")
        court = CourtDB(id=str(uuid4()), office_id=office.id, name="1° Juzgado Civil de Santiago")
        subtask_type = SubTaskTypeDB(id=str(uuid4()), office_id=office.id, name="Notificación")
        document_type = DocumentTypeDB(
            id=str(uuid4()),
            office_id=office.id,
            name="Notificación personal",
            category="Estampo",
            template_body=DEFAULT_TEMPLATE,
        )
        db.add_all([office, bank, lawyer, court, subtask_type, document_type])
        db.flush()

        db.add(LawyerBankDB(id=str(uuid4()), office_id=office.id, lawyer_id=lawyer.id, bank_id=bank.id))
        db.add(FeeEntryDB(
            id=str(uuid4()),
            office_id=office.id,
            bank_id=bank.id,
            lawyer_id=None,
            document_type_id=document_type.id,
            amount=12000,
        ))
        db.commit()

        print(f"Reference data created successfully!")
        print(f"  Office: {office.name} ({office.id})")
        print(f"  Bank: {bank.name} ({bank.id})")
        print(f"  Lawyer: {lawyer.name} ({lawyer.id})")
        print(f"  Document type: {document_type.name} ({document_type.id})")
        print(f"  Token: {create_access_token(str(uuid4()), office.id, 'seed@localhost')}")
        return True

    except Exception as e:
        print(f"Error seeding reference data: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) not in (2, 3, 4):
        print(__doc__)
        sys.exit(1)

    office_name = sys.argv[1]
    signature_path = sys.argv[2] if len(sys.argv) > 2 else None
    seal_path = sys.argv[3] if len(sys.argv) > 3 else None

    for path in (signature_path, seal_path):
        if path and not os.path.isfile(path):
            print(f"Error: Image '{path}' not found.")
            sys.exit(1)

    success = seed(office_name, signature_path, seal_path)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
