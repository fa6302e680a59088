from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import router
from app.api.admin_routes import router as admin_router
from app.settings import settings

app = FastAPI(title="ContainerStacks Portal Pages")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

app.include_router(router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}


print(
    f"[boot] PAYMENTS_API_URL={settings.PAYMENTS_API_URL} "
    f"CLOSE_FALLBACK_DELAY_MS={settings.CLOSE_FALLBACK_DELAY_MS} METRICS_ENABLED={settings.METRICS_ENABLED}"
)
