# medrec/api/endpoints/metrics.py

import time

import psutil
import redis.asyncio as redis
from fastapi import APIRouter, Depends
from loguru import logger

from medrec.core.config import settings
from medrec.core.database import test_connection
from medrec.core.rbac import RequirePermission
from medrec.models.user import User

router = APIRouter(prefix="/api/metrics", tags=["System & Metrics"])

# Module load time, for uptime
START_TIME = time.time()


async def database_health() -> dict:
    started = time.time()
    try:
        await test_connection()
    except Exception:
        logger.exception("Health check: database unreachable")
        return {"database": "Error", "db_latency": 0}
    return {"database": "Connected", "db_latency": round((time.time() - started) * 1000, 2)}


def disk_percent() -> float:
    try:
        return psutil.disk_usage("/").percent
    except OSError:
        return 0.0


# ===================================================================
# 1. PROCESS & DATABASE HEALTH (public)
# ===================================================================
@router.get("")
async def metrics():
    db = await database_health()

    current_time = time.strftime("%H:%M:%S")
    logs = [{"time": current_time, "level": "INFO", "msg": f"Health check: DB Latency {db['db_latency']}ms"}]
    if db["database"] != "Connected":
        logs.append({"time": current_time, "level": "ERROR", "msg": "Database connection failed."})

    return {
        "status": "Online",
        "cpu": psutil.cpu_percent(interval=None),
        "ram": psutil.virtual_memory().percent,
        "disk": disk_percent(),
        "process_memory_mb": round(psutil.Process().memory_info().rss / (1024 * 1024), 1),
        "uptime": int(time.time() - START_TIME),
        **db,
        "logs": logs,
    }


# ===================================================================
# 2. REDIS / RATE LIMIT STORAGE (admin)
# ===================================================================
@router.get("/redis-stats")
async def get_redis_statistics(
    _: User = Depends(RequirePermission("system", "read")),
):
    if not settings.REDIS_URL:
        return {"status": "Disabled", "message": "Redis is not configured."}

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
    )
    try:
        info = await client.info()
        dbsize = await client.dbsize()

        active_limits = []
        async for key in client.scan_iter(match="LIMITER/*", count=100):
            active_limits.append(key)
            if len(active_limits) >= 20:
                break

        return {
            "status": "Online",
            "metrics": {
                "redis_version": info.get("redis_version"),
                "connected_clients": info.get("connected_clients"),
                "used_memory": info.get("used_memory_human"),
                "total_keys": dbsize,
                "active_rate_limit_windows": len(active_limits),
            },
        }
    except redis.ConnectionError:
        logger.warning("Redis server unreachable")
        return {"status": "Offline", "detail": "Redis server unreachable."}
    finally:
        await client.aclose()
