import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from imagerelay.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Image Relay API",
    description="Fetches remote images, draws text on them and republishes them to the CDN",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "image-relay"}

from imagerelay.api.v1 import images

# Mounted at the root so the public paths stay /fetch-image and /text-on-image
app.include_router(images.router, tags=["images"])
