import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/messaging_db")

# Application Metadata
PROJECT_NAME = "Transactional Outbox/Inbox Service"
VERSION = "1.0.0"

# Outbox Publishing Configuration
OUTBOX_POLLING_INTERVAL = float(os.getenv("OUTBOX_POLLING_INTERVAL", 60)) # Seconds between publish runs
OUTBOX_BATCH_SIZE = int(os.getenv("OUTBOX_BATCH_SIZE", 100)) # How many messages to fetch per run
OUTBOX_MAX_ATTEMPTS = int(os.getenv("OUTBOX_MAX_ATTEMPTS", 0)) # 0 = retry transient failures forever
OUTBOX_PUBLISH_TIMEOUT = float(os.getenv("OUTBOX_PUBLISH_TIMEOUT", 30)) # Seconds per bus publish call

# Retention Cleanup Configuration
OUTBOX_RETENTION_DAYS = int(os.getenv("OUTBOX_RETENTION_DAYS", 7))
INBOX_RETENTION_DAYS = int(os.getenv("INBOX_RETENTION_DAYS", 30))
CLEANUP_INTERVAL = float(os.getenv("CLEANUP_INTERVAL", 24 * 60 * 60)) # Daily

# Scheduler Configuration
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")
SHUTDOWN_TIMEOUT = float(os.getenv("SHUTDOWN_TIMEOUT", 30)) # Seconds to wait for a running job on stop

# Host application modules that register message types and handlers (comma separated)
MESSAGE_MODULES = [m.strip() for m in os.getenv("MESSAGE_MODULES", "").split(",") if m.strip()]
