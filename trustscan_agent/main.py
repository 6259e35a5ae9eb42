from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .models import ScanRequest, ScanResult
from .scanner import ScanError, Scanner


# Load environment variables from the repo root .env (VIRUSTOTAL_API_KEY, GEMINI_API_KEY in local dev)
_HERE = Path(__file__).resolve()
load_dotenv(_HERE.parents[1] / ".env", override=False)


def create_app(settings: Settings | None = None, scanner: Scanner | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="TrustScan Agent", version="0.1.0")
    app.state.scanner = scanner or Scanner(settings)

    # For local dev, this defaults to allowing http://localhost:3000.
    # In production, set TRUSTSCAN_CORS_ORIGINS to your deployed frontend origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ScanError)
    async def scan_error_handler(request: Request, exc: ScanError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.post("/analyze", response_model=ScanResult)
    async def analyze_endpoint(req: ScanRequest, request: Request):
        return await request.app.state.scanner.scan(req.query)

    return app


app = create_app()
