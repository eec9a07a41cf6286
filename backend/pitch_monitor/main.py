import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import analysis, audio

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _init_logging():
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


_init_logging()

app = FastAPI(title="Pitch Monitor Backend")

# CORS – dopasuj origin frontendu (Vite domyślnie 5173)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(audio.router, prefix="/api/audio", tags=["audio"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])

@app.get("/health")
def health():
    return {"ok": True}
