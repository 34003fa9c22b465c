# app/main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from app.config import settings
from app.utils.log import Log
from app.utils.database import init_db
from app.utils.errors import register_error_handlers
from app.services.rate_limit import TokenBucketRateLimiter
from app.middleware.db_middleware import DBSessionMiddleware

import os
import multiprocessing

# --- загрузка переменных окружения ---
load_dotenv()

# --- sync логгер для раннего старта ---
boot_log = Log()
if os.environ.get("RUN_MAIN") == "true" or multiprocessing.current_process().name == "MainProcess":
    boot_log.log_info_sync(target="startup", message="Импорты main.py выполнены")

# ────────────── Lifespan ──────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    boot_log.log_info_sync(target="startup", message="lifespan: startup начат")

    try:
        await init_db()
    except Exception as e:
        boot_log.log_error_sync(target="startup", message=f"Ошибка инициализации базы: {e}")
        raise
    boot_log.log_info_sync(target="startup", message="База инициализирована")

    app.state.rate_limiter = TokenBucketRateLimiter(
        capacity=settings.RATE_LIMIT_CAPACITY,
        refill_rate=settings.RATE_LIMIT_REFILL_RATE,
    )

    app.state.log = Log()
    await app.state.log.log_info(target="startup", message="Async Log инициализирован")

    yield

    # shutdown
    await app.state.log.log_info(target="shutdown", message="Остановка приложения")
    await app.state.log.shutdown()
    boot_log.log_info_sync(target="shutdown", message="Log корректно завершён")

# ────────────── Создаём FastAPI приложение ──────────────
app = FastAPI(title="Buyer Lead Intake API", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# DB middleware для request.state.db
app.add_middleware(DBSessionMiddleware)

register_error_handlers(app)


@app.get("/health")
def health():
    return {"status": "ok"}

# ────────────── Подключение роутов ──────────────
from app.routes import auth, buyer, buyer_csv

app.include_router(auth.router, prefix="/auth", tags=["auth"])
# /buyers/csv должен матчиться раньше /buyers/{id}
app.include_router(buyer_csv.router, prefix="/buyers", tags=["buyers"])
app.include_router(buyer.router, prefix="/buyers", tags=["buyers"])

# ────────────── Запуск uvicorn ──────────────
if __name__ == "__main__":
    boot_log.log_info_sync(target="startup", message="Запуск uvicorn.run")
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=8000,
        log_level="info",
        reload=True
    )
