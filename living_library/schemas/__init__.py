"""Convenience exports for schema layer."""
from .ai import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    ExtractionResponse,
    ProcessFileRequest,
    SummarizeRequest,
    SummaryResponse,
)
from .auth import LoginRequest, SessionResponse, SignUpRequest, UserProfileResponse
from .comments import CommentCreate, CommentListResponse, CommentResponse
from .interactions import (
    BookmarkResponse,
    EmpathyRequest,
    EmpathyResponse,
    LikeResponse,
    ReportRequest,
    ReportResponse,
)
from .stories import (
    EmpathyStats,
    StoryCreate,
    StoryDetailResponse,
    StoryDraftRequest,
    StoryEngagement,
    StoryListResponse,
    StoryResponse,
    StoryUpdate,
)

__all__ = [
    "BookmarkResponse",
    "ChatRequest",
    "ChatResponse",
    "CommentCreate",
    "CommentListResponse",
    "CommentResponse",
    "EmpathyRequest",
    "EmpathyResponse",
    "EmpathyStats",
    "ErrorResponse",
    "ExtractionResponse",
    "LikeResponse",
    "LoginRequest",
    "ProcessFileRequest",
    "ReportRequest",
    "ReportResponse",
    "SessionResponse",
    "SignUpRequest",
    "StoryCreate",
    "StoryDetailResponse",
    "StoryDraftRequest",
    "StoryEngagement",
    "StoryListResponse",
    "StoryResponse",
    "StoryUpdate",
    "SummarizeRequest",
    "SummaryResponse",
    "UserProfileResponse",
]
