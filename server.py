"""
Development server for the team portal API.
Runs backend.api.main:app under uvicorn with auto-reload.
"""

import os

import uvicorn

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

if __name__ == "__main__":
    print(f"Serving API at http://localhost:{PORT}")
    print(f"Open http://localhost:{PORT}/docs for the interactive docs")
    uvicorn.run("backend.api.main:app", host=HOST, port=PORT, reload=True)
