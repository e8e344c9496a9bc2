from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expo_reserve.core.errors import ExpoError, Unauthenticated
from expo_reserve.core.logging_config import configure_logging
from expo_reserve.database.db import Base, engine
from expo_reserve.routes import applications, expos, reports, reservations, resources

configure_logging()

app = FastAPI(title="expo-reserve")

# Configure CORS
origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExpoError)
async def expo_error_handler(request: Request, exc: ExpoError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)

# Include the routers
app.include_router(expos.router)
app.include_router(resources.router)
app.include_router(reservations.router)
app.include_router(applications.router)
app.include_router(reports.router)
