import asyncio
import asyncpg
import os
from dotenv import load_dotenv

load_dotenv()

async def create_schema():
    conn = await asyncpg.connect(os.getenv('DATABASE_URL'))

    # Create extension for UUID
    await conn.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # Create all tables
    tables_sql = '''
        -- Users
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email VARCHAR(255) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Subjects a user can subscribe to
        CREATE TABLE IF NOT EXISTS subjects (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            name VARCHAR(200) UNIQUE NOT NULL,
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Subscriptions (active, paused, cancelled)
        CREATE TABLE IF NOT EXISTS subscriptions (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id UUID NOT NULL REFERENCES users(id),
            subject_id INTEGER NOT NULL REFERENCES subjects(id),
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, subject_id)
        );

        -- Topics in syllabus order
        CREATE TABLE IF NOT EXISTS topics (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            subject_id INTEGER NOT NULL REFERENCES subjects(id),
            title TEXT NOT NULL,
            topic_data JSONB,
            sequence_order INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        -- Issues (generating, draft, failed, approved, sent)
        CREATE TABLE IF NOT EXISTS issues (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            topic_id INTEGER NOT NULL REFERENCES topics(id),
            title TEXT NOT NULL,
            content TEXT,
            raw_html TEXT,
            raw_text TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'generating',
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ,
            approved_at TIMESTAMPTZ,
            sent_at TIMESTAMPTZ
        );

        -- Newsletter deliveries, one per (issue, user)
        CREATE TABLE IF NOT EXISTS deliveries (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            issue_id INTEGER NOT NULL REFERENCES issues(id),
            user_id UUID NOT NULL REFERENCES users(id),
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            external_id TEXT,
            error_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            sent_at TIMESTAMPTZ,
            delivered_at TIMESTAMPTZ,
            UNIQUE(issue_id, user_id)
        );

        -- Transactional and marketing emails, one per (user, type, campaign)
        CREATE TABLE IF NOT EXISTS transactional_emails (
            id UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id UUID NOT NULL REFERENCES users(id),
            email_type VARCHAR(20) NOT NULL,
            campaign_id VARCHAR(100) NOT NULL DEFAULT '',
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            external_id TEXT,
            error_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            sent_at TIMESTAMPTZ,
            delivered_at TIMESTAMPTZ,
            UNIQUE(user_id, email_type, campaign_id)
        );

        -- Per-subject cursor of the next topic to send
        CREATE TABLE IF NOT EXISTS newsletter_sequence (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            subject_id INTEGER UNIQUE NOT NULL REFERENCES subjects(id),
            current_sequence INTEGER NOT NULL DEFAULT 1,
            version INTEGER NOT NULL DEFAULT 0,
            last_sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ
        );

        -- One row per delivery run
        CREATE TABLE IF NOT EXISTS newsletter_send_results (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            issue_id INTEGER NOT NULL REFERENCES issues(id),
            name TEXT NOT NULL,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ,
            total_sent INTEGER NOT NULL DEFAULT 0,
            total_failed INTEGER NOT NULL DEFAULT 0,
            failed_user_ids TEXT[] NOT NULL DEFAULT '{}'
        );

        -- Reader feedback on issues and campaigns
        CREATE TABLE IF NOT EXISTS feedback (
            id INTEGER PRIMARY KEY GENERATED ALWAYS AS IDENTITY,
            user_id UUID NOT NULL REFERENCES users(id),
            issue_id INTEGER REFERENCES issues(id),
            campaign_id TEXT,
            feedback TEXT NOT NULL,
            rating NUMERIC(2, 1),
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, issue_id),
            UNIQUE(user_id, campaign_id)
        );
    '''

    await conn.execute(tables_sql)

    # Create indexes
    indexes_sql = '''
        CREATE INDEX IF NOT EXISTS idx_users_created ON users(created_at, id);
        CREATE INDEX IF NOT EXISTS idx_subscriptions_subject_status ON subscriptions(subject_id, status);
        CREATE INDEX IF NOT EXISTS idx_topics_subject_sequence ON topics(subject_id, sequence_order);
        CREATE INDEX IF NOT EXISTS idx_issues_topic ON issues(topic_id);
        CREATE INDEX IF NOT EXISTS idx_deliveries_status ON deliveries(status);
        CREATE INDEX IF NOT EXISTS idx_deliveries_external_id ON deliveries(external_id);
        CREATE INDEX IF NOT EXISTS idx_transactional_emails_external_id ON transactional_emails(external_id);
        CREATE INDEX IF NOT EXISTS idx_feedback_campaign ON feedback(campaign_id);
    '''

    await conn.execute(indexes_sql)

    print("✅ Database schema created successfully!")
    await conn.close()

if __name__ == "__main__":
    asyncio.run(create_schema())
