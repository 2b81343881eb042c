"""
Assistant Controllers (API Routes)
==================================

FastAPI routes for the AI chat assistant and its FAQ administration.

Controllers delegate to application services. Identity is forwarded by
the auth gateway in the X-User-ID / X-User-Role headers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.assistant.application import (
    AvailabilityGate,
    ChatOrchestrator,
    ConversationLearner,
    DocumentExtractor,
    ITextGenerationBackend,
    KnowledgeBaseService,
    ResponseGenerator,
    ChatRequest,
    ChatResponse,
    MemoryHistoryResponse,
    MemoryTurnInfo,
    AvailabilityUpdateRequest,
    AvailabilityResponse,
    FaqCreateRequest,
    FaqEntryInfo,
    FaqListResponse,
    ExtractFaqRequest,
    ExtractFaqResponse,
    LearnFaqRequest,
    LearnFaqResponse,
)
from helpdesk.assistant.domain import AssistantPromptConfig
from helpdesk.assistant.infrastructure import (
    SQLAlchemyAvailabilityRepository,
    SQLAlchemyFaqRepository,
    SQLAlchemyMemoryRepository,
)
from helpdesk.config import UserRole, settings
from helpdesk.infrastructure.database import get_session
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/ai", tags=["AI Assistant"])


# ========== Example payloads for Swagger ==========

CHAT_RESPONSE_EXAMPLE = {
    "response": "Go to Settings > Security and choose Reset password. "
                "You'll receive a confirmation email within a few minutes."
}

SETTINGS_RESPONSE_EXAMPLE = {
    "enabled": True,
    "faq_document_url": "https://docs.example.com/support-faq.pdf",
    "updated_at": "2025-01-15T10:30:00Z"
}


# ========== Dependencies ==========

async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID")
) -> str:
    """Caller identity as forwarded by the auth gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return x_user_id.strip()


async def require_admin(
    user_id: str = Depends(get_current_user_id),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role")
) -> str:
    """Reject callers without the admin role."""
    if (x_user_role or "").strip().lower() != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user_id


def get_backend(request: Request) -> ITextGenerationBackend:
    """Generative backend built at startup."""
    backend = getattr(request.app.state, "llm_backend", None)
    if backend is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="AI backend not configured"
        )
    return backend


def get_prompt_config(request: Request) -> AssistantPromptConfig:
    """Current persona wording (hot-reloaded from YAML)."""
    manager = getattr(request.app.state, "assistant_config", None)
    if manager is None:
        return AssistantPromptConfig()
    return manager.config


async def get_gate(db: AsyncSession = Depends(get_session)) -> AvailabilityGate:
    return AvailabilityGate(SQLAlchemyAvailabilityRepository(db))


def _response_generator(backend: ITextGenerationBackend, prompt_config: AssistantPromptConfig) -> ResponseGenerator:
    return ResponseGenerator(
        backend,
        timeout_seconds=settings.llm_timeout_seconds,
        fallback_response=prompt_config.fallback_response
    )


async def get_chat_orchestrator(
    db: AsyncSession = Depends(get_session),
    gate: AvailabilityGate = Depends(get_gate),
    backend: ITextGenerationBackend = Depends(get_backend),
    prompt_config: AssistantPromptConfig = Depends(get_prompt_config)
) -> ChatOrchestrator:
    return ChatOrchestrator(
        gate=gate,
        memory_repository=SQLAlchemyMemoryRepository(db),
        faq_repository=SQLAlchemyFaqRepository(db),
        generator=_response_generator(backend, prompt_config),
        prompt_config=prompt_config,
        memory_history_limit=settings.memory_history_limit,
        prompt_history_limit=settings.prompt_history_limit,
        max_message_length=settings.max_message_length,
    )


async def get_history_reader(
    db: AsyncSession = Depends(get_session),
    gate: AvailabilityGate = Depends(get_gate)
) -> ChatOrchestrator:
    """History-only orchestrator; works without a configured backend."""
    return ChatOrchestrator(
        gate=gate,
        memory_repository=SQLAlchemyMemoryRepository(db),
        faq_repository=SQLAlchemyFaqRepository(db),
        memory_history_limit=settings.memory_history_limit,
    )


async def get_faq_admin_service(
    db: AsyncSession = Depends(get_session),
    gate: AvailabilityGate = Depends(get_gate)
) -> KnowledgeBaseService:
    """Knowledge base service for CRUD routes that never call the backend."""
    return KnowledgeBaseService(SQLAlchemyFaqRepository(db), gate)


async def get_knowledge_service(
    db: AsyncSession = Depends(get_session),
    gate: AvailabilityGate = Depends(get_gate),
    backend: ITextGenerationBackend = Depends(get_backend),
    prompt_config: AssistantPromptConfig = Depends(get_prompt_config)
) -> KnowledgeBaseService:
    generator = _response_generator(backend, prompt_config)
    return KnowledgeBaseService(
        SQLAlchemyFaqRepository(db),
        gate,
        extractor=DocumentExtractor(generator),
        learner=ConversationLearner(generator),
    )


# ========== Chat ==========

@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Send a message to the AI assistant",
    description="""
    Answer one user message using the FAQ knowledge base and the caller's
    recent conversation history. The exchange is remembered only when a
    response was generated.

    **Errors**:
    - `400` - message missing, empty or longer than 4000 characters
    - `503` - assistant disabled by an administrator
    - `500` - the AI backend failed; try again later
    """,
    responses={
        200: {
            "description": "Response generated",
            "content": {"application/json": {"example": CHAT_RESPONSE_EXAMPLE}}
        },
        503: {"description": "AI assistant is currently disabled"}
    }
)
async def chat(
    request: Request,
    payload: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.info("Chat message received", extra={"correlation_id": correlation_id, "user_id": user_id})

    response = await orchestrator.handle_message(user_id, payload.message)
    return ChatResponse(response=response)


@router.get(
    "/memory",
    response_model=MemoryHistoryResponse,
    summary="Get the caller's recent conversation",
    description="Returns the caller's most recent exchanges, oldest first."
)
async def get_memory(
    user_id: str = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_history_reader)
):
    turns = await orchestrator.get_history(user_id)
    return MemoryHistoryResponse(turns=[MemoryTurnInfo.model_validate(t) for t in turns])


# ========== Settings ==========

@router.get(
    "/settings",
    response_model=AvailabilityResponse,
    summary="Get assistant availability",
    responses={
        200: {
            "description": "Current settings",
            "content": {"application/json": {"example": SETTINGS_RESPONSE_EXAMPLE}}
        }
    }
)
async def get_assistant_settings(
    user_id: str = Depends(get_current_user_id),
    gate: AvailabilityGate = Depends(get_gate)
):
    flag = await gate.get_flag()
    return AvailabilityResponse.model_validate(flag)


@router.post(
    "/settings",
    response_model=AvailabilityResponse,
    summary="Enable or disable the assistant (admin)"
)
async def update_assistant_settings(
    payload: AvailabilityUpdateRequest,
    admin_id: str = Depends(require_admin),
    gate: AvailabilityGate = Depends(get_gate)
):
    flag = await gate.set_enabled(payload.enabled)
    logger.info("Availability updated by admin", extra={"admin_id": admin_id, "enabled": payload.enabled})
    return AvailabilityResponse.model_validate(flag)


# ========== FAQ administration ==========

@router.get(
    "/faq",
    response_model=FaqListResponse,
    summary="List FAQ entries (admin)"
)
async def list_faq_entries(
    admin_id: str = Depends(require_admin),
    service: KnowledgeBaseService = Depends(get_faq_admin_service)
):
    entries = await service.list_entries()
    return FaqListResponse(
        entries=[FaqEntryInfo.model_validate(e) for e in entries],
        total=len(entries)
    )


@router.post(
    "/faq",
    response_model=FaqEntryInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Add a FAQ entry manually (admin)"
)
async def create_faq_entry(
    payload: FaqCreateRequest,
    admin_id: str = Depends(require_admin),
    service: KnowledgeBaseService = Depends(get_faq_admin_service)
):
    entry = await service.add_manual_entry(payload.question, payload.answer)
    return FaqEntryInfo.model_validate(entry)


@router.delete(
    "/faq/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a FAQ entry (admin)",
    responses={404: {"description": "FAQ entry not found"}}
)
async def delete_faq_entry(
    entry_id: int,
    admin_id: str = Depends(require_admin),
    service: KnowledgeBaseService = Depends(get_faq_admin_service)
):
    await service.delete_entry(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/faq/extract",
    response_model=ExtractFaqResponse,
    summary="Extract FAQ entries from a document (admin)",
    description="""
    Ask the AI backend to pull question/answer pairs out of the referenced
    document and store them tagged `pdf`. Questions already in the
    knowledge base are skipped. Unusable model output yields zero entries,
    not an error.
    """
)
async def extract_faq_entries(
    payload: ExtractFaqRequest,
    admin_id: str = Depends(require_admin),
    service: KnowledgeBaseService = Depends(get_knowledge_service)
):
    result = await service.ingest_document(payload.document_url)
    return ExtractFaqResponse(
        document_url=result.document_reference,
        extracted=result.extracted,
        saved=result.saved,
        entries=[FaqEntryInfo.model_validate(e) for e in result.entries]
    )


@router.post(
    "/faq/learn",
    response_model=LearnFaqResponse,
    summary="Learn a FAQ entry from one exchange (admin)"
)
async def learn_faq_entry(
    payload: LearnFaqRequest,
    admin_id: str = Depends(require_admin),
    service: KnowledgeBaseService = Depends(get_knowledge_service)
):
    entry = await service.learn_from_exchange(payload.question, payload.answer)
    if entry is None:
        return LearnFaqResponse(saved=False)
    return LearnFaqResponse(saved=True, entry=FaqEntryInfo.model_validate(entry))


# Export router
assistant_router = router
