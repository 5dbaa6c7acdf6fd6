# skillforge/core/storage/paths.py
from __future__ import annotations
from pathlib import Path
import os

# One database per component
# catalog: skills, workflow progress, workflow sessions
ALLOWED_COMPONENTS = {"catalog"}

def skillforge_home() -> Path:
    """Home directory, ~/.skillforge unless SKILLFORGE_HOME is set"""
    override = os.getenv("SKILLFORGE_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".skillforge"

def store_root() -> Path:
    """Root for component databases"""
    return skillforge_home() / "store"

def logs_dir() -> Path:
    """Directory for log files"""
    return skillforge_home() / "logs"

def default_workspace_path() -> Path:
    """Default root holding one directory per skill"""
    return skillforge_home() / "workspace"

def component_db_dir(component: str) -> Path:
    """Database directory of a component"""
    if component not in ALLOWED_COMPONENTS:
        raise ValueError(f"Unknown component: {component}. Allowed: {ALLOWED_COMPONENTS}")
    return store_root() / component

def component_db_path(component: str) -> Path:
    """Database file of a component"""
    return component_db_dir(component) / "db.sqlite"

def ensure_db_exists(component: str) -> Path:
    """Create the database directory and WAL-mode file if missing, return its path"""
    import sqlite3

    d = component_db_dir(component)
    d.mkdir(parents=True, exist_ok=True)
    p = component_db_path(component)

    if not p.exists():
        conn = sqlite3.connect(str(p))
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA foreign_keys=ON;")
            conn.execute("PRAGMA busy_timeout=30000;")
            conn.commit()
        finally:
            conn.close()

    return p
