"""Initial schema: connections, agents, links, documents, chunk embeddings

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.execute("""
        CREATE TABLE tool_connections (
            id              UUID PRIMARY KEY,
            organization_id TEXT NOT NULL,
            provider        TEXT NOT NULL,
            display_name    TEXT NOT NULL,
            description     TEXT,
            account_email   TEXT,
            access_token    TEXT NOT NULL,
            refresh_token   TEXT,
            expires_at      TIMESTAMPTZ,
            scopes          TEXT[] NOT NULL DEFAULT '{}',
            metadata        JSONB NOT NULL DEFAULT '{}'::jsonb,
            connected_by    TEXT,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_tool_connections_org ON tool_connections (organization_id, is_active)")
    # One active connection per provider per organization
    op.execute("""
        CREATE UNIQUE INDEX uq_tool_connections_active_provider
        ON tool_connections (organization_id, provider)
        WHERE is_active
    """)

    op.execute("""
        CREATE TABLE agents (
            id              UUID PRIMARY KEY,
            organization_id TEXT NOT NULL,
            name            TEXT NOT NULL,
            instructions    TEXT NOT NULL,
            is_active       BOOLEAN NOT NULL DEFAULT TRUE,
            created_by      TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_agents_org ON agents (organization_id, is_active)")

    op.execute("""
        CREATE TABLE agent_connections (
            id            UUID PRIMARY KEY,
            agent_id      UUID NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
            connection_id UUID NOT NULL REFERENCES tool_connections(id) ON DELETE CASCADE,
            tool_alias    VARCHAR(50) NOT NULL,
            created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (agent_id, connection_id)
        )
    """)
    op.execute("CREATE INDEX idx_agent_connections_connection ON agent_connections (connection_id)")

    op.execute("""
        CREATE TABLE documents (
            id              UUID PRIMARY KEY,
            organization_id TEXT NOT NULL,
            title           TEXT NOT NULL,
            content_type    TEXT NOT NULL,
            size_bytes      BIGINT NOT NULL,
            storage_path    TEXT,
            uploaded_by     TEXT,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE agent_documents (
            id          UUID PRIMARY KEY,
            agent_id    UUID NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
            document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            UNIQUE (agent_id, document_id)
        )
    """)

    op.execute("""
        CREATE TABLE document_embeddings (
            id          TEXT PRIMARY KEY,
            document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            chunk_index INTEGER NOT NULL,
            embedding   vector(1536) NOT NULL,
            metadata    JSONB NOT NULL DEFAULT '{}'::jsonb
        )
    """)
    op.execute("""
        CREATE INDEX idx_document_embeddings_vector
        ON document_embeddings USING hnsw (embedding vector_cosine_ops)
    """)

    # Row level security on organization-owned tables. Sessions opened
    # without an organization (token refresh, agent assembly) see all rows.
    for table in ("tool_connections", "agents", "documents"):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"""
            CREATE POLICY {table}_org_isolation ON {table}
            USING (
                COALESCE(current_setting('app.current_org_id', true), '') = ''
                OR organization_id = current_setting('app.current_org_id', true)
            )
        """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS document_embeddings CASCADE")
    op.execute("DROP TABLE IF EXISTS agent_documents CASCADE")
    op.execute("DROP TABLE IF EXISTS documents CASCADE")
    op.execute("DROP TABLE IF EXISTS agent_connections CASCADE")
    op.execute("DROP TABLE IF EXISTS agents CASCADE")
    op.execute("DROP TABLE IF EXISTS tool_connections CASCADE")
