#!/usr/bin/env python3
# backend/run.py
"""
Development server runner for the studio booking API.
For local development only.
"""
import os
from pathlib import Path

import uvicorn

backend_dir = Path(__file__).parent
os.chdir(backend_dir)

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting studio booking API at http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run(
        "studio_booking.main:app", host="0.0.0.0", port=port, reload=True, log_level="info"
    )
