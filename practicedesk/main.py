from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from practicedesk.core.errors import PracticeDeskError
from practicedesk.core.firebase import init_firebase
from practicedesk.api.routes import auth, patients, practices

app = FastAPI(title="Practice Desk Backend")


@app.on_event("startup")
def startup():
    """Initialize third-party services at app startup."""
    # Initialize Firebase Admin (reads credentials path from settings)
    init_firebase()


@app.exception_handler(PracticeDeskError)
async def practicedesk_error_handler(request: Request, exc: PracticeDeskError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
async def root():
    return {"message": "Practice Desk Backend is running"}


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# Include API routers
app.include_router(auth.router)
app.include_router(practices.router)
app.include_router(patients.router)
app.include_router(patients.all_router)
