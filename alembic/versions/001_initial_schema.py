"""Initial schema: patterns, likes, pattern comments, posts, comments, with RLS.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

TABLES = ("patterns", "pattern_likes", "pattern_comments", "posts", "comments")


def upgrade():
    # The acting user: app.user_id on the direct connection path,
    # the JWT subject when requests come through the hosted REST API.
    op.execute("""
        CREATE OR REPLACE FUNCTION app_current_user_id() RETURNS uuid
        LANGUAGE sql STABLE
        AS $$
            SELECT COALESCE(
                NULLIF(current_setting('app.user_id', true), ''),
                NULLIF(current_setting('request.jwt.claims', true), '')::jsonb ->> 'sub'
            )::uuid
        $$;
    """)

    op.execute("""
        CREATE TABLE patterns (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            created_at TIMESTAMPTZ DEFAULT now(),
            name TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'Drums',
            code TEXT NOT NULL,
            author TEXT NOT NULL DEFAULT 'anonymous',
            tags TEXT[] NOT NULL DEFAULT '{}',
            description TEXT NOT NULL DEFAULT '',
            user_id UUID
        );
    """)
    op.execute("CREATE INDEX idx_patterns_created_at ON patterns(created_at DESC)")
    op.execute("CREATE INDEX idx_patterns_user_id ON patterns(user_id)")

    op.execute("""
        CREATE TABLE pattern_likes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            created_at TIMESTAMPTZ DEFAULT now(),
            pattern_id UUID NOT NULL REFERENCES patterns(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            UNIQUE (pattern_id, user_id)
        );
    """)

    op.execute("""
        CREATE TABLE pattern_comments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            created_at TIMESTAMPTZ DEFAULT now(),
            content TEXT NOT NULL,
            pattern_id UUID NOT NULL REFERENCES patterns(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            author TEXT NOT NULL
        );
    """)
    op.execute("CREATE INDEX idx_pattern_comments_pattern_id ON pattern_comments(pattern_id)")

    op.execute("""
        CREATE TABLE posts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            created_at TIMESTAMPTZ DEFAULT now(),
            content TEXT NOT NULL,
            user_id UUID NOT NULL,
            author TEXT NOT NULL
        );
    """)
    op.execute("CREATE INDEX idx_posts_created_at ON posts(created_at DESC)")

    op.execute("""
        CREATE TABLE comments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            created_at TIMESTAMPTZ DEFAULT now(),
            content TEXT NOT NULL,
            post_id UUID NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            user_id UUID NOT NULL,
            author TEXT NOT NULL
        );
    """)
    op.execute("CREATE INDEX idx_comments_post_id ON comments(post_id)")

    for table in TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")

        # Everything is publicly readable
        op.execute(f"""
            CREATE POLICY {table}_select_all
            ON {table}
            FOR SELECT
            USING (true);
        """)

        # Only the owner may delete
        op.execute(f"""
            CREATE POLICY {table}_delete_own
            ON {table}
            FOR DELETE
            USING (
                app_current_user_id() IS NOT NULL
                AND user_id = app_current_user_id()
            );
        """)

    # Ownerless patterns are the seeded demo set: direct connections only,
    # never through the REST API (which always sets request.jwt.claims).
    op.execute("""
        CREATE POLICY patterns_insert_own
        ON patterns
        FOR INSERT
        WITH CHECK (
            (
                user_id IS NULL
                AND NULLIF(current_setting('request.jwt.claims', true), '') IS NULL
            )
            OR (
                app_current_user_id() IS NOT NULL
                AND user_id = app_current_user_id()
            )
        );
    """)

    for table in ("pattern_likes", "pattern_comments", "posts", "comments"):
        op.execute(f"""
            CREATE POLICY {table}_insert_own
            ON {table}
            FOR INSERT
            WITH CHECK (
                app_current_user_id() IS NOT NULL
                AND user_id = app_current_user_id()
            );
        """)


def downgrade():
    op.execute("DROP TABLE IF EXISTS comments CASCADE")
    op.execute("DROP TABLE IF EXISTS posts CASCADE")
    op.execute("DROP TABLE IF EXISTS pattern_comments CASCADE")
    op.execute("DROP TABLE IF EXISTS pattern_likes CASCADE")
    op.execute("DROP TABLE IF EXISTS patterns CASCADE")
    op.execute("DROP FUNCTION IF EXISTS app_current_user_id()")
