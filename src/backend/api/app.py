from __future__ import annotations

from fastapi import FastAPI

from api.compliance import router as compliance_router


def create_app() -> FastAPI:
    app = FastAPI(title="Infrastructure Compliance Review")
    app.include_router(compliance_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
