#!/usr/bin/env python3
# backend/run_celery_worker.py
"""
Development Celery runner for the reminder scan.

Starts one worker consuming the reminders queue with an embedded beat
scheduler, which is enough for local development.
"""
import os
from pathlib import Path
import subprocess
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "local")

if __name__ == "__main__":
    queues = os.getenv("CELERY_QUEUES") or "reminders,celery"
    print(f"Starting Celery worker with beat (queues: {queues})")

    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        "slotbook.tasks.celery_app",
        "worker",
        "--beat",
        "--loglevel=info",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "-Q",
        queues,
    ]

    sys.exit(subprocess.run(cmd).returncode)
