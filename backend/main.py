from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging
from contextlib import asynccontextmanager

from backend.config import Config
from backend.core.llm import GeminiLLMWrapper
from backend.core.question_agent import QuestionAgent
from backend.core.analysis_agent import PerformanceAnalysisAgent
from backend.core.quiz_session import QuizSession
from backend.core.storage import create_storage
from backend.models.schemas import HealthResponse
from backend.api import quiz


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

storage = None
quiz_session = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global storage, quiz_session

    try:
        # Validate configuration
        Config.validate_config()

        # Initialize components
        llm_wrapper = GeminiLLMWrapper()
        storage = create_storage()
        quiz_session = QuizSession(
            QuestionAgent(llm_wrapper),
            PerformanceAnalysisAgent(llm_wrapper),
            storage,
        )
        quiz_session.hydrate()

        # Set dependencies for routers
        quiz.set_dependencies(quiz_session)

        logger.info("Application initialized successfully")

    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        raise e

    yield

    # Cleanup on shutdown
    if quiz_session:
        await quiz_session.wait_for_preload()
    if storage:
        storage.close()
    logger.info("Application shutting down")

# Create FastAPI app
app = FastAPI(
    title="Math Quest API",
    description="AI-generated math questions with answer checking and performance analysis",
    version=VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(quiz.router, prefix="/api", tags=["quiz"])

@app.get("/")
async def root():
    return {"message": "Math Quest API is running"}

@app.get("/health", response_model=HealthResponse)
async def health_check():
    details = None
    if quiz_session:
        details = {
            "storage_backend": Config.STORAGE_BACKEND,
            "history_length": len(quiz_session.history),
            "hydration_errors": len(quiz_session.hydration_errors),
        }
    return HealthResponse(status="healthy", version=VERSION, details=details)

if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=True
    )
