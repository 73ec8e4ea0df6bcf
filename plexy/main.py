"""Main FastAPI application."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plexy import __version__
from plexy.api.auth import AuthenticationError
from plexy.api.endpoints import router
from plexy.utils.logging import setup_logging

setup_logging()

# Create FastAPI application
app = FastAPI(
    title="Plexy Study Assistant",
    description=(
        "A conversational study assistant that reads the student's Google Classroom "
        "and Google Drive through tool calls."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    tags_metadata=[
        {
            "name": "Chat",
            "description": "Conversational turns with the assistant, persisted per conversation.",
        },
        {
            "name": "Credentials",
            "description": "Store, fetch and refresh the delegated Google credential of the user.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": exc.error})


# Include routers
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("plexy.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
