#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interview Prep Portal - Command Line
Управление прогрессом подготовки к собеседованиям из терминала

Версия: 2.0.0
"""

import asyncio
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from core.models import KeyFormatError
from services import ServiceManager
from services.data_export import export_to_file, read_import_file
from utils.logger import setup_logging

logger = logging.getLogger(__name__)

# ===== АРГУМЕНТЫ =====

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="interview-prep",
        description="Interview preparation progress tracker"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show progress summary")
    subparsers.add_parser("sync", help="Reconcile local progress with the remote store")

    complete = subparsers.add_parser("complete-day", help="Mark a curriculum day as completed")
    complete.add_argument("day", type=int)
    complete.add_argument("--track", default=None)
    complete.add_argument("--minutes", type=int, default=None, help="Actual study time")

    toggle = subparsers.add_parser("toggle-task", help="Toggle a task of a day")
    toggle.add_argument("day", type=int)
    toggle.add_argument("index", type=int)
    toggle.add_argument("--track", default=None)

    question = subparsers.add_parser("study-question", help="Mark an interview question as studied")
    question.add_argument("question_id")
    question.add_argument("--category", default=None)
    question.add_argument("--minutes", type=int, default=5)

    export = subparsers.add_parser("export", help="Write a backup file")
    export.add_argument("--dir", type=Path, default=None)

    import_parser = subparsers.add_parser("import", help="Restore from a backup file")
    import_parser.add_argument("path", type=Path)

    reset = subparsers.add_parser("reset", help="Reset all progress and achievements")
    reset.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    subparsers.add_parser("run", help="Run background sync until interrupted")

    return parser

def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))

# ===== КОМАНДЫ =====

async def run_command(args: argparse.Namespace, manager: ServiceManager) -> int:
    portal = manager.portal
    store = manager.store
    track = getattr(args, "track", None) or manager.config.curriculum.default_track

    if args.command == "status":
        summary = portal.summary()
        summary["goals"] = portal.goals_progress()
        summary["achievements"] = [
            {"id": a["achievement_id"], "unlocked": a["unlocked"], "progress": f"{a['current']}/{a['target']}"}
            for a in portal.achievements_overview()
        ]
        _print_json(summary)
        return 0

    if args.command == "sync":
        result = await manager.reconciler.sync()
        _print_json(result.to_dict())
        return 0 if result.success else 1

    if args.command == "complete-day":
        saved = await portal.mark_day_complete(track, args.day, args.minutes)
        print(f"Day {track}-{args.day} completed ({portal.completion_percentage():.1f}% of the curriculum)")
        return 0 if saved else 1

    if args.command == "toggle-task":
        state = await portal.toggle_task(track, args.day, args.index)
        print(f"Task {args.index} of day {track}-{args.day}: {'done' if state else 'not done'}")
        return 0

    if args.command == "study-question":
        if await portal.mark_question_studied(args.question_id, args.category, args.minutes):
            print(f"Question {args.question_id} marked as studied")
        else:
            print(f"Question {args.question_id} was already studied")
        return 0

    if args.command == "export":
        export_dir = args.dir or manager.config.export_dir
        path = export_to_file(store.export_document(), export_dir, store.today())
        print(f"Backup written to {path}")
        return 0

    if args.command == "import":
        try:
            document = read_import_file(args.path)
        except (OSError, ValueError) as e:
            logger.error(f"❌ Не удалось прочитать файл {args.path}: {e}")
            return 1
        return 0 if await portal.import_backup(document) else 1

    if args.command == "reset":
        if not args.yes:
            answer = input("This deletes all progress and achievements. Continue? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Reset cancelled")
                return 0
        return 0 if await portal.reset_progress() else 1

    raise ValueError(f"Unknown command: {args.command}")

async def run_forever(manager: ServiceManager) -> None:
    """Работа в фоне до сигнала остановки"""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            # Windows: остается KeyboardInterrupt
            pass

    logger.info("🚀 Фоновая синхронизация запущена, Ctrl+C для остановки")
    await stop_event.wait()
    logger.info("📢 Получен сигнал остановки")

# ===== ГЛАВНАЯ ФУНКЦИЯ =====

async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    from config import config
    setup_logging(config)

    manager = ServiceManager(config)
    if not await manager.start(run_scheduler=args.command == "run"):
        return 1

    try:
        if args.command == "run":
            await run_forever(manager)
            return 0
        return await run_command(args, manager)
    except KeyFormatError as e:
        logger.error(f"❌ {e}")
        return 2
    finally:
        await manager.stop()

# ===== ТОЧКА ВХОДА =====

def cli():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("👋 Остановлено пользователем")

if __name__ == "__main__":
    cli()
