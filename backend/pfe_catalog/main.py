import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pfe_catalog.core.config import settings
from pfe_catalog.core.exceptions import CatalogError, StoreError
from pfe_catalog.api.v1.api import api_router
from pfe_catalog.schemas.error import ErrorResponse
from pfe_catalog.services.autosave import draft_autosaver

# 配置日志，屏蔽 httpx 的 INFO 日志
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 启动
    logger.info("Starting up...")
    draft_autosaver.start()
    yield
    # 关闭
    logger.info("Shutting down...")
    draft_autosaver.shutdown()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

# CORS跨域配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    """把业务异常渲染为 ErrorResponse"""
    body = ErrorResponse(
        error=type(exc).__name__,
        message=exc.message,
        detail=None if isinstance(exc, StoreError) else exc.detail,  # 数据库错误只返回通用提示
        code=exc.code,
        extra=exc.extra,
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# 包含API路由
app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
