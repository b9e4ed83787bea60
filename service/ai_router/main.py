import asyncio

from fastapi import FastAPI, Header, HTTPException, Request

from ai_router.config import get_settings
from ai_router.logging_config import bot_logger as logger
from ai_router.telegram_bot.bot import handle_telegram_update, initialize_bot, shutdown_bot
from ai_router.telegram_bot.telegram_api import set_webhook

app = FastAPI(
    title="Telegram AI Router",
    description="Inline, chat and button access to configurable AI backends",
    version="0.1.0"
)

# Keep references so in-flight update tasks are not garbage collected
_background_tasks: set[asyncio.Task] = set()


# Lifecycle events
@app.on_event("startup")
async def startup_event():
    """Initialize bot on startup."""
    logger.info("[STARTUP] Initializing Telegram bot...")
    await initialize_bot()


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown bot on application shutdown."""
    logger.info("[SHUTDOWN] Shutting down Telegram bot...")
    await shutdown_bot()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": "0.1.0"
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "Telegram AI Router"}


# Telegram webhook endpoint
@app.post("/telegram/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str = Header(None)
):
    """
    Webhook endpoint for Telegram updates.

    Telegram sends updates here when messages arrive.
    """
    settings = get_settings()

    # Verify secret token if configured
    if settings.telegram_webhook_secret:
        if x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
            raise HTTPException(status_code=403, detail="Invalid secret token")

    update_data = await request.json()

    # Handle update in background (fire-and-forget for fast 200 OK)
    task = asyncio.create_task(handle_telegram_update(update_data))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"ok": True}


@app.get("/telegram/set-webhook")
async def register_webhook(request: Request):
    """Point Telegram at this deployment's /telegram/webhook."""
    settings = get_settings()
    webhook_url = str(request.url_for("telegram_webhook"))
    logger.info(f"Registering webhook {webhook_url}")
    return await set_webhook(webhook_url, settings.telegram_webhook_secret or None)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
