import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.errors import register_exception_handlers
from backend.database import Base, engine, ensure_schedule_schema
from backend.models import available_slot, reservation, teacher, user  # noqa: F401
from backend.routes import schedule_routes, teacher_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

app = FastAPI(title='Teacher Schedule API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schedule_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Teacher Schedule API Running'}


app.include_router(schedule_routes.router, prefix='/schedule')
app.include_router(teacher_routes.router, prefix='/teachers')


if __name__ == '__main__':
    uvicorn.run(
        'backend.main:app',
        host=config.HOST,
        port=config.PORT,
        reload=config.APP_ENV == 'development',
        log_level=config.LOG_LEVEL.lower(),
    )
