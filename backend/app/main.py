"""
酒店后台管理系统主应用入口
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import init_db
from app.routers import auth, users, rooms, reservations, billing, services, housekeeping, feedback, reports

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    # 初始化数据库
    init_db()
    logger.info("%s 启动完成", settings.APP_NAME)

    yield


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="客房、预订、账务与运营工单管理",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(rooms.router)
app.include_router(reservations.router)
app.include_router(billing.router)
app.include_router(services.router)
app.include_router(services.orders_router)
app.include_router(housekeeping.cleaning_router)
app.include_router(housekeeping.maintenance_router)
app.include_router(feedback.router)
app.include_router(reports.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
