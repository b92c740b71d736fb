from fastapi import FastAPI

from .routes import router

app = FastAPI(title="real-ip", description="Resolve the client address behind trusted reverse proxies")
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
