"""
Migration: Add unique stamp version index on generated_documents.

uq_document_version - (case_id, subtask_id, document_type_id, version)
WHERE document_type_id IS NOT NULL

Receipts have no document type and are left out. Duplicate versions written
before the index existed are renumbered by creation time.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/receptor_engine"
)

INDEX_NAME = "uq_document_version"


def index_exists(conn, index_name: str) -> bool:
    """Check if an index exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM pg_indexes
            WHERE indexname = :index_name
        )
    """), {"index_name": index_name})
    return result.fetchone()[0]


def renumber_versions(conn) -> int:
    """Rewrite stamp versions as 1..n per (case, sub-task, document type)."""
    result = conn.execute(text("""
        UPDATE generated_documents AS d
        SET version = ranked.n
        FROM (
            SELECT id, ROW_NUMBER() OVER (
                PARTITION BY case_id, subtask_id, document_type_id
                ORDER BY created_at, id
            ) AS n
            FROM generated_documents
            WHERE document_type_id IS NOT NULL
        ) AS ranked
        WHERE d.id = ranked.id AND d.version IS DISTINCT FROM ranked.n
    """))
    return result.rowcount


def run_migration():
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        if index_exists(conn, INDEX_NAME):
            print(f"{INDEX_NAME} already exists")
        else:
            renumbered = renumber_versions(conn)
            print(f"Renumbered {renumbered} stamp version(s)")
            conn.execute(text(f"""
                CREATE UNIQUE INDEX {INDEX_NAME}
                ON generated_documents (case_id, subtask_id, document_type_id, version)
                WHERE document_type_id IS NOT NULL
            """))
            print(f"Created {INDEX_NAME}")

        conn.commit()
        print("\nDocument version index migration completed successfully!")


if __name__ == "__main__":
    run_migration()
