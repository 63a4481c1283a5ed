from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routes import router
from .auth import require_secret
from .core import aws_startup, search_startup, init_metrics, shutdown_connections
from .errors import AroundError
import logging
from pythonjsonlogger.json import JsonFormatter

# setup structured logging
logger = logging.getLogger('around')
handler = logging.StreamHandler()
formatter = JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(logging.INFO)

app = FastAPI(title="Around API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(router)

@app.exception_handler(AroundError)
async def around_error_handler(request: Request, exc: AroundError):
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.detail})

@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}

@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg':'request_start','method':request.method,'path':request.url.path})
    response = await call_next(request)
    logger.info({'msg':'request_end','status': response.status_code})
    return response

@app.on_event("startup")
async def startup():
    # Store clients and indices are required; any failure here stops the process
    require_secret()
    aws_startup()
    await search_startup()
    init_metrics()

@app.on_event("shutdown")
async def shutdown():
    await shutdown_connections()
