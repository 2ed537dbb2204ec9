"""
Project configuration and versioning for the Bible Notes Companion.
"""

APP_NAME = "Bible Notes Companion"
__version__ = "0.3.0"

# Portable document versions (exact match on import)
NOTES_SNAPSHOT_VERSION = "1.0"
TEXT_SNAPSHOT_VERSION = "1.0"
BACKUP_VERSION = "2.0"

DEFAULT_STRATEGY = "merge_combine"

RESEARCH_ID_PREFIX = "ai_"
DEVICE_ID_PREFIX = "device_"

# Export file name stems, e.g. bible-notes-2024-05-01.json
NOTES_EXPORT_STEM = "bible-notes"
BACKUP_EXPORT_STEM = "bible-app-backup"
