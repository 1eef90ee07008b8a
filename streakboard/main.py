from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streakboard.db.database import init_db
from streakboard.routes import activity, challenges, users


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    await init_db()
    yield


app = FastAPI(
    title='Streakboard API',
    description='Challenge progress and daily verification engine',
    version='0.1.0',
    lifespan=lifespan,
)

# CORS for mobile app
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# Routes
app.include_router(users.router, prefix='/api/users', tags=['users'])
app.include_router(challenges.router, prefix='/api/challenges', tags=['challenges'])
app.include_router(activity.router, prefix='/api/activity', tags=['activity'])


@app.get('/health')
async def health_check():
    """Health check endpoint."""
    return {'status': 'ok', 'service': 'streakboard-api'}
