def create_schema_sql():
    """Return SQL for creating the database schema."""
    return """
    CREATE EXTENSION IF NOT EXISTS pgcrypto;

    CREATE TABLE IF NOT EXISTS source (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        project_id VARCHAR(64) NOT NULL,
        type VARCHAR(20) NOT NULL,
        data JSONB NOT NULL DEFAULT '{}'::jsonb,
        inserted_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS sync_queue (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        source_id UUID NOT NULL REFERENCES source(id) ON DELETE CASCADE,
        status VARCHAR(20) NOT NULL,
        created_at TIMESTAMP NOT NULL DEFAULT NOW(),
        ended_at TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS file (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        source_id UUID NOT NULL REFERENCES source(id) ON DELETE CASCADE,
        path TEXT NOT NULL,
        meta JSONB NOT NULL DEFAULT '{}'::jsonb,
        updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
        token_count INTEGER
    );

    CREATE TABLE IF NOT EXISTS token (
        id SERIAL PRIMARY KEY,
        project_id VARCHAR(64) NOT NULL,
        value VARCHAR(64) NOT NULL UNIQUE,
        created_by VARCHAR(64),
        inserted_at TIMESTAMP NOT NULL DEFAULT NOW()
    );

    -- Create indexes
    CREATE INDEX IF NOT EXISTS idx_source_project_id ON source(project_id);
    CREATE INDEX IF NOT EXISTS idx_sync_queue_source_created ON sync_queue(source_id, created_at DESC);
    CREATE UNIQUE INDEX IF NOT EXISTS idx_sync_queue_one_running
        ON sync_queue(source_id) WHERE status = 'running';
    CREATE INDEX IF NOT EXISTS idx_file_source_id ON file(source_id);
    CREATE INDEX IF NOT EXISTS idx_file_updated_at ON file(updated_at);
    CREATE INDEX IF NOT EXISTS idx_token_project_id ON token(project_id);
    """
