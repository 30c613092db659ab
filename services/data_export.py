# services/data_export.py

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

def backup_filename(day: date) -> str:
    return f"interview-prep-backup-{day.isoformat()}.json"

def export_to_file(document: Dict[str, Any], export_dir: Path, day: date) -> Path:
    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    filename = export_dir / backup_filename(day)
    with open(filename, "w", encoding="utf-8") as f:
        json.dump(document, f, ensure_ascii=False, indent=2)
    logger.info(f"💾 Резервная копия сохранена: {filename}")
    return filename

def read_import_file(path: Path) -> Any:
    # Ошибки чтения и разбора JSON обрабатывает вызывающий код
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
