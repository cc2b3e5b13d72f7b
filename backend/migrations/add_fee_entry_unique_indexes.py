"""
Migration: Add partial unique indexes on fee_entries.

A composite UNIQUE (office_id, bank_id, lawyer_id, document_type_id) does not
stop duplicate bank-wide rows, because every NULL lawyer_id is distinct. The
uniqueness is split in two:

1. uq_fee_bank_wide - (office_id, bank_id, document_type_id) WHERE lawyer_id IS NULL
2. uq_fee_lawyer    - (office_id, bank_id, lawyer_id, document_type_id) WHERE lawyer_id IS NOT NULL

Existing duplicates must be resolved by hand first; the migration lists them
and stops.
"""
from sqlalchemy import create_engine, text
import os
import sys

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/receptor_engine"
)

INDEXES = {
    "uq_fee_bank_wide": """
        CREATE UNIQUE INDEX uq_fee_bank_wide
        ON fee_entries (office_id, bank_id, document_type_id)
        WHERE lawyer_id IS NULL
    """,
    "uq_fee_lawyer": """
        CREATE UNIQUE INDEX uq_fee_lawyer
        ON fee_entries (office_id, bank_id, lawyer_id, document_type_id)
        WHERE lawyer_id IS NOT NULL
    """,
}


def index_exists(conn, index_name: str) -> bool:
    """Check if an index exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM pg_indexes
            WHERE indexname = :index_name
        )
    """), {"index_name": index_name})
    return result.fetchone()[0]


def find_duplicates(conn):
    """Fee tuples that would violate the new indexes."""
    result = conn.execute(text("""
        SELECT office_id, bank_id, lawyer_id, document_type_id, COUNT(*) AS n
        FROM fee_entries
        GROUP BY office_id, bank_id, lawyer_id, document_type_id
        HAVING COUNT(*) > 1
    """))
    return result.fetchall()


def run_migration():
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        duplicates = find_duplicates(conn)
        if duplicates:
            print("Duplicate fee entries found, resolve them before migrating:")
            for row in duplicates:
                lawyer = row.lawyer_id or "(bank-wide)"
                print(f"  office={row.office_id} bank={row.bank_id} lawyer={lawyer} "
                      f"document_type={row.document_type_id} rows={row.n}")
            sys.exit(1)

        for name, ddl in INDEXES.items():
            if index_exists(conn, name):
                print(f"{name} already exists")
            else:
                conn.execute(text(ddl))
                print(f"Created {name}")

        conn.commit()
        print("\nFee entry index migration completed successfully!")


if __name__ == "__main__":
    run_migration()
