# === sql_review_agent/sql_review/file_discovery.py ===

import os
import sys
from typing import List, Optional

from sql_review.models import Engine

REVIEWABLE_EXTENSIONS = (".sql", ".txt", ".js", ".mongo")
MONGO_EXTENSIONS = (".js", ".mongo")
STDIN_TARGET = "-"


def is_reviewable_file(file_name: str) -> bool:
    return file_name.lower().endswith(REVIEWABLE_EXTENSIONS)


def infer_engine(file_name: str) -> Optional[Engine]:
    """
    MongoDB for .js/.mongo scripts, otherwise None (the configured engine applies).
    """
    if file_name.lower().endswith(MONGO_EXTENSIONS):
        return Engine.MONGODB
    return None


def discover_script_files(target: str) -> List[str]:
    """
    Returns the reviewable script files for a file or directory target.
    Directories are walked recursively; hidden folders are skipped.
    """
    if os.path.isfile(target):
        return [target]
    script_files = []
    for dirpath, dirnames, filenames in os.walk(target):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for fname in sorted(filenames):
            if is_reviewable_file(fname):
                script_files.append(os.path.join(dirpath, fname))
    return script_files


def read_script(path: str) -> str:
    if path == STDIN_TARGET:
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()
