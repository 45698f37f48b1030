import os

# Must be set before zeitkonto.settings is first imported.
os.environ.setdefault("ZK_DATABASE_URL", "sqlite://")
os.environ.setdefault("ZK_SCHEMA_GUARD_ENABLED", "false")
os.environ.setdefault("ZK_LOG_LEVEL", "WARNING")
