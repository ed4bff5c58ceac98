#!/usr/bin/env python3
"""
Backup and restore for Synapse Memory System
Copyright 2025 Jurden Bruce

Packs the graph and vector files into a timestamped zip archive with a
manifest, and restores them into the data directory. A running server picks
restored files up on its next read.

Usage:
    python -m synapse_memory.backup backup [--description TEXT]
    python -m synapse_memory.backup restore synapse_backup_20251024_183000.zip
    python -m synapse_memory.backup list
"""

import argparse
import json
import logging
import os
import shutil
import sys
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import MemoryConfig

logger = logging.getLogger("synapse-memory.backup")

BACKUP_PREFIX = "synapse_backup_"
MANIFEST_NAME = "manifest.json"


def default_backup_dir(config: MemoryConfig) -> Path:
    return Path(os.getenv("SYNAPSE_BACKUP_DIR") or config.data_dir / "backups")


def _count_entries(path: Path) -> Dict[str, Any]:
    """Record counts for the manifest; unreadable files count as zero"""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {path} for stats: {e}")
        return {}
    if isinstance(data, dict):
        return {"nodes": len(data.get("nodes") or {}), "edges": len(data.get("edges") or [])}
    if isinstance(data, list):
        return {"records": len(data)}
    return {}


def create_backup(config: MemoryConfig, backup_dir: Optional[Path] = None, description: str = None) -> Path:
    """Create backup archive

    Raises:
        FileNotFoundError: neither store file exists yet
    """
    backup_dir = Path(backup_dir) if backup_dir else default_backup_dir(config)
    sources = {
        "graph": config.graph_path,
        "vectors": config.vector_path,
    }
    present = {kind: path for kind, path in sources.items() if path.exists()}
    if not present:
        raise FileNotFoundError(f"No memory files found in {config.data_dir}")

    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = backup_dir / f"{BACKUP_PREFIX}{timestamp}.zip"

    manifest = {
        "timestamp": timestamp,
        "created_at": datetime.now().isoformat(),
        "description": description or "Memory system backup",
        "files": {kind: path.name for kind, path in present.items()},
        "stats": {kind: _count_entries(path) for kind, path in present.items()},
    }

    try:
        with zipfile.ZipFile(backup_path, "w", zipfile.ZIP_DEFLATED) as zipf:
            for kind, path in present.items():
                zipf.write(path, path.name)
                logger.info(f"Added {path.name}")
            zipf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))
    except OSError:
        backup_path.unlink(missing_ok=True)
        raise

    logger.info(f"Backup created: {backup_path}")
    return backup_path


def validate_backup(backup_path: Path) -> Dict[str, Any]:
    """Validate backup archive and read manifest

    Raises:
        FileNotFoundError: archive missing
        ValueError: not a zip, or manifest missing or inconsistent
    """
    if not backup_path.exists():
        raise FileNotFoundError(f"Backup not found: {backup_path}")

    if not zipfile.is_zipfile(backup_path):
        raise ValueError(f"Not a valid zip file: {backup_path}")

    with zipfile.ZipFile(backup_path, "r") as zipf:
        names = zipf.namelist()
        if MANIFEST_NAME not in names:
            raise ValueError("Backup missing manifest.json")

        with zipf.open(MANIFEST_NAME) as f:
            manifest = json.load(f)

    files = manifest.get("files")
    if not isinstance(files, dict) or not files:
        raise ValueError("Backup manifest lists no store files")
    for name in files.values():
        if name not in names:
            raise ValueError(f"Backup missing {name}")
        if Path(name).name != name:
            raise ValueError(f"Unsafe file name in manifest: {name}")

    return manifest


def restore_backup(config: MemoryConfig, backup_path: Path) -> Dict[str, Any]:
    """Restore from backup archive

    Current store files are kept next to the originals as ``*.bak``.

    Returns:
        The archive's manifest
    """
    backup_path = Path(backup_path)
    manifest = validate_backup(backup_path)
    targets = {
        "graph": config.graph_path,
        "vectors": config.vector_path,
    }

    config.data_dir.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(backup_path, "r") as zipf:
        for kind, name in manifest["files"].items():
            target = targets.get(kind)
            if target is None:
                logger.warning(f"Skipping unknown entry {kind}={name}")
                continue

            if target.exists():
                shutil.copy2(target, target.with_name(target.name + ".bak"))

            tmp_path = target.with_name(f".{target.name}.restore")
            with zipf.open(name) as src, open(tmp_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.replace(tmp_path, target)
            logger.info(f"Restored {target}")

    logger.info(f"Restore from {backup_path.name} complete")
    return manifest


def list_backups(backup_dir: Path) -> List[Dict[str, Any]]:
    """Available backups, newest first"""
    backup_dir = Path(backup_dir)
    if not backup_dir.exists():
        return []

    backups = []
    for backup in sorted(backup_dir.glob(f"{BACKUP_PREFIX}*.zip"), reverse=True):
        entry = {
            "name": backup.name,
            "path": str(backup),
            "size_mb": backup.stat().st_size / (1024 * 1024),
        }
        try:
            with zipfile.ZipFile(backup, "r") as zipf:
                with zipf.open(MANIFEST_NAME) as f:
                    manifest = json.load(f)
            entry["created_at"] = manifest.get("created_at")
            entry["description"] = manifest.get("description")
            entry["stats"] = manifest.get("stats", {})
        except (OSError, KeyError, ValueError, zipfile.BadZipFile) as e:
            logger.warning(f"Manifest not readable in {backup.name}: {e}")
        backups.append(entry)
    return backups


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
    )

    parser = argparse.ArgumentParser(description="Backup and restore Synapse Memory files")
    parser.add_argument("--data-dir", help="Override SYNAPSE_DATA_DIR")
    parser.add_argument("--backup-dir", help="Where archives live (default: <data-dir>/backups)")
    sub = parser.add_subparsers(dest="command", required=True)

    backup_cmd = sub.add_parser("backup", help="Create a backup archive")
    backup_cmd.add_argument("--description", "-d", help="Backup description")

    restore_cmd = sub.add_parser("restore", help="Restore from a backup archive")
    restore_cmd.add_argument("backup", help="Archive path or name inside the backup directory")

    sub.add_parser("list", help="List available backups")

    args = parser.parse_args(argv)

    config = MemoryConfig.from_env(Path(args.data_dir) if args.data_dir else None)
    backup_dir = Path(args.backup_dir) if args.backup_dir else default_backup_dir(config)

    try:
        if args.command == "backup":
            path = create_backup(config, backup_dir, args.description)
            print(f"[SUCCESS] Backup created: {path}")

        elif args.command == "restore":
            backup_path = Path(args.backup)
            if not backup_path.is_absolute() and not backup_path.exists():
                backup_path = backup_dir / args.backup
            manifest = restore_backup(config, backup_path)
            print(f"[SUCCESS] Restored backup from {manifest.get('created_at', 'unknown')}")

        elif args.command == "list":
            backups = list_backups(backup_dir)
            if not backups:
                print(f"No backups found in {backup_dir}")
            for entry in backups:
                print(f"[BACKUP] {entry['name']}")
                print(f"   Created: {entry.get('created_at', 'Unknown')}")
                print(f"   Size: {entry['size_mb']:.2f} MB")
                print(f"   Stats: {json.dumps(entry.get('stats', {}))}")
                print(f"   Description: {entry.get('description', 'No description')}")
                print()
    except (FileNotFoundError, ValueError, OSError, zipfile.BadZipFile) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"[FAILED] {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
