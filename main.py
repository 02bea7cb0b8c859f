"""
Main entrypoint for the FastAPI server
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from core.lifespan import lifespan
from core.config import get_settings
from core.exceptions import StorageError, TrustyError
from core.logger import logger

from api.auth.routes import router as auth_router
from api.files.routes import router as files_router


# Customize route id's
# Helpful for creating sensible names in the client
def custom_generate_unique_id(route: APIRoute):
    """ Generate unique route IDs based on route name """
    return f"{route.name}"  # these must be unique


# Create schema & router
app = FastAPI(
    title="Trusty",
    lifespan=lifespan,
    generate_unique_id_function=custom_generate_unique_id
)

# CORS settings to allow client-server communication
# Set with env variable
origins = [get_settings().client_origin or "*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrustyError)
async def trusty_error_handler(request: Request, exc: TrustyError) -> JSONResponse:
    """ Render domain errors the same way HTTPException renders """
    if isinstance(exc, StorageError):
        # Details are in the log; clients get a generic message
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        detail = StorageError.default_message
    else:
        detail = exc.message
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


# REST routers
# Add each api/feature folder here
API_PREFIX = "/api/v1"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(files_router, prefix=API_PREFIX)


# Health check endpoint for monitoring
@app.get("/api/health", tags=["health"])
def health_check():
    return {"status": "ok", "message": "Trusty API is running"}


if __name__ == "__main__":
    # For debugging purposes
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
