#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves the API with auto-reload against the database configured in the
environment (a local SQLite file unless DATABASE_URL says otherwise).
"""
import os
from pathlib import Path
import sys

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))
os.chdir(backend_dir)

os.environ.setdefault("ENVIRONMENT", "local")

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting Slotbook API (ENVIRONMENT={os.environ['ENVIRONMENT']})")
    print(f"Access at: http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run("slotbook.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
