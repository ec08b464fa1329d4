"""create_konterra_tables

Revision ID: konterra_001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "konterra_001"
down_revision = None
branch_labels = ("core",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS contacts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            name TEXT NOT NULL CHECK (length(btrim(name)) > 0),
            email TEXT,
            phone TEXT,
            company TEXT,
            role TEXT,
            city TEXT,
            country TEXT,
            address TEXT,
            website TEXT,
            notes TEXT,
            birthday DATE,
            lat DOUBLE PRECISION CHECK (lat BETWEEN -90 AND 90),
            lng DOUBLE PRECISION CHECK (lng BETWEEN -180 AND 180),
            tags TEXT[] NOT NULL DEFAULT '{}',
            is_self BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_contacts_user ON contacts (user_id)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_contacts_user_self
        ON contacts (user_id) WHERE is_self
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_contacts_missing_coords
        ON contacts (user_id, created_at) WHERE lat IS NULL
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS contact_connections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            source_contact_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            target_contact_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            connection_type TEXT NOT NULL CHECK (connection_type IN (
                'knows', 'introduced_by', 'works_with', 'reports_to',
                'invested_in', 'referred_by'
            )),
            strength SMALLINT NOT NULL DEFAULT 3 CHECK (strength BETWEEN 1 AND 5),
            bidirectional BOOLEAN NOT NULL DEFAULT true,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT contact_connections_no_self_edge
                CHECK (source_contact_id <> target_contact_id),
            CONSTRAINT contact_connections_unique_edge
                UNIQUE (user_id, source_contact_id, target_contact_id, connection_type)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_contact_connections_source
        ON contact_connections (user_id, source_contact_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_contact_connections_target
        ON contact_connections (user_id, target_contact_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS interactions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            contact_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            type TEXT NOT NULL CHECK (type IN (
                'meeting', 'call', 'message', 'email', 'event',
                'introduction', 'deal', 'note'
            )),
            occurred_at TIMESTAMPTZ NOT NULL,
            location TEXT,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_interactions_contact
        ON interactions (user_id, contact_id, occurred_at DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS favors (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            contact_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            direction TEXT NOT NULL CHECK (direction IN ('given', 'received')),
            type TEXT NOT NULL CHECK (type IN (
                'introduction', 'advice', 'referral', 'money',
                'opportunity', 'resource', 'time'
            )),
            value TEXT NOT NULL DEFAULT 'medium'
                CHECK (value IN ('low', 'medium', 'high', 'critical')),
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'resolved', 'expired', 'repaid')),
            description TEXT,
            occurred_at TIMESTAMPTZ,
            resolved_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_favors_contact ON favors (user_id, contact_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS introductions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            contact_a_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            contact_b_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            initiated_by TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'planned' CHECK (status IN (
                'planned', 'introduced', 'connected', 'failed', 'completed', 'made'
            )),
            occurred_at TIMESTAMPTZ,
            outcome TEXT,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT introductions_distinct_contacts CHECK (contact_a_id <> contact_b_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_introductions_user ON introductions (user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS contact_country_connections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            contact_id UUID NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
            country TEXT NOT NULL,
            notes TEXT,
            tags TEXT[] NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_contact_country_connections_contact
        ON contact_country_connections (user_id, contact_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS tags (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            name TEXT NOT NULL CHECK (length(name) BETWEEN 1 AND 50),
            color TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT tags_unique_name UNIQUE (user_id, name)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS trips (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            city TEXT NOT NULL,
            country TEXT NOT NULL,
            arrival_date DATE NOT NULL,
            departure_date DATE,
            duration_days INTEGER CHECK (duration_days >= 0),
            notes TEXT,
            lat DOUBLE PRECISION CHECK (lat BETWEEN -90 AND 90),
            lng DOUBLE PRECISION CHECK (lng BETWEEN -180 AND 180),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_trips_missing_coords
        ON trips (user_id, created_at) WHERE lat IS NULL
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS visited_countries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            country TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT visited_countries_unique UNIQUE (user_id, country)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS wishlist_countries (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            country TEXT NOT NULL,
            priority TEXT NOT NULL DEFAULT 'medium'
                CHECK (priority IN ('dream', 'high', 'medium', 'low')),
            status TEXT NOT NULL DEFAULT 'idea'
                CHECK (status IN ('idea', 'researching', 'planning', 'ready')),
            notes TEXT CHECK (length(notes) <= 2000),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT wishlist_countries_unique UNIQUE (user_id, country)
        )
    """)


def downgrade() -> None:
    for table in (
        "wishlist_countries",
        "visited_countries",
        "trips",
        "tags",
        "contact_country_connections",
        "introductions",
        "favors",
        "interactions",
        "contact_connections",
        "contacts",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
