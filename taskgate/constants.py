"""Constants shared across store, checklist and pipeline modules."""

# Context directory layout
DEFAULT_CONTEXT_DIR = ".ai-context"
QUEUE_FILE_NAME = "tasks.json"
CACHE_FILE_NAME = "current-task.json"
BACKUP_DIR_NAME = "backups"
CONFIG_FILE_NAME = "config.yaml"
PATTERNS_FILE_NAME = "patterns.yaml"

# Context artifacts owned by the renderer and cleared on completion
STATUS_FILE_NAME = "STATUS.txt"
NEXT_STEPS_FILE_NAME = "NEXT_STEPS.md"
WARNINGS_FILE_NAME = "WARNINGS.md"
CONTEXT_ARTIFACTS = (STATUS_FILE_NAME, NEXT_STEPS_FILE_NAME, WARNINGS_FILE_NAME)

# Goal length bounds (after trimming)
MIN_GOAL_LENGTH = 10
MAX_GOAL_LENGTH = 500

# Rate limiting thresholds, in seconds
RAPID_CHANGE_SECONDS = 60
RECENT_CHANGE_SECONDS = 5 * 60

# Typical time spent per state, shown with rapid change warnings
TYPICAL_STATE_DURATIONS = (
    ("Understanding", "5-30 minutes"),
    ("Design", "10-60 minutes"),
    ("Implementation", "30-240 minutes"),
    ("Testing", "15-90 minutes"),
    ("Review", "10-30 minutes"),
)

DEFAULT_ARCHIVE_AFTER_DAYS = 30

# CLI program name, used in remediation hints
CLI_NAME = "taskctl"
