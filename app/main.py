# app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import Base, engine
from app.routers import auth, progress, majors, tracking, lab, notifications
from app.services.errors import EngineError

import time
import logging
from fastapi import Request
from app.logging_config import setup_logging


setup_logging()
logger = logging.getLogger("app")


# 建立資料表（若不存在）
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Curriculum Progress Backend", version="1.0.0")


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
        ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%dms)", request.method, request.url.path, response.status_code, ms)
        return response
    except Exception:
        ms = int((time.time() - start) * 1000)
        logger.exception("Unhandled error %s %s (%dms)", request.method, request.url.path, ms)
        raise


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(progress.router)
app.include_router(majors.router)
app.include_router(tracking.router)
app.include_router(lab.router)
app.include_router(notifications.router)

@app.get("/")
def root():
    return {"message": "Curriculum progress backend is running!"}
