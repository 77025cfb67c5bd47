import os
# Used by app.py, gateway.py and the scripts/



# Absolute path to project root
# (a stable anchor for all file paths - where is it on disk)
basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("REGISTRY_SECRET_KEY", "dev-secret-key")

    # Shared tables (students.csv, faculty.csv, courses.csv, admins.csv).
    # Every gateway worker and client process must point at the same directory.
    DATA_DIR = os.environ.get("REGISTRY_DATA_DIR", os.path.join(basedir, "database"))

    # Longest encoded line accepted by any table (bytes, newline included).
    # Longer records are rejected, never truncated.
    MAX_LINE_LEN = int(os.environ.get("REGISTRY_MAX_LINE_LEN", "512"))

    # Multi-table commits go through the roll-forward journal in DATA_DIR/.journal
    JOURNAL_COMMITS = _env_bool("REGISTRY_JOURNAL_COMMITS", True)

    # Off: passwords are stored as typed (legacy tables). On: new passwords are
    # stored as werkzeug PBKDF2 hashes; login accepts both.
    PASSWORD_HASHING = _env_bool("REGISTRY_PASSWORD_HASHING", False)

    GATEWAY_HOST = os.environ.get("REGISTRY_GATEWAY_HOST", "0.0.0.0")
    GATEWAY_PORT = int(os.environ.get("REGISTRY_GATEWAY_PORT", "8080"))

    LOG_LEVEL = os.environ.get("REGISTRY_LOG_LEVEL", "INFO")

    # Roster files (CSV + xlsx) read by scripts/seed_tables.py
    ROSTER_DIR = os.path.join(basedir, "data_roster")
