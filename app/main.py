from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.institutions.router import router as institutions_router
from app.api.v1.promotions.router import router as promotions_router
from app.api.v1.sessions.router import router as sessions_router
from app.api.v1.students.router import router as students_router
from app.api.v1.teachers.router import router as teachers_router
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Academic Session Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(institutions_router)
    app.include_router(sessions_router)
    app.include_router(classes_router)
    app.include_router(students_router)
    app.include_router(teachers_router)
    app.include_router(promotions_router)

    return app


app = create_app()
