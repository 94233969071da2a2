"""Convenience exports for service layer."""
from .ai_service import AICompletionError, AIService, ExtractionResult, InvalidFileDataError, set_ai_client
from .asset_service import (
    AssetStore,
    AssetStoreError,
    InvalidAssetError,
    SpacesConfigurationError,
    build_asset_store,
)
from .collection_mirror import CollectionMirror, EmpathyRating
from .document_store import (
    SERVER_TIMESTAMP,
    ConcurrentUpdateError,
    Document,
    DocumentExistsError,
    DocumentNotFoundError,
    DocumentStore,
    Snapshot,
    StoreError,
)
from .identity_service import (
    AuthSession,
    EmailAlreadyInUseError,
    IdentityError,
    IdentityProvider,
    InvalidCredentialsError,
    InvalidTokenError,
    Principal,
    WeakPasswordError,
)
from .library_context import LibraryContext, ResourceAccessDeniedError
from .mutation_service import (
    AlreadyReportedError,
    InvalidInputError,
    MutationFacade,
    NotAuthenticatedError,
    PermissionDeniedError,
    ProfanityError,
    ResourceNotFoundError,
)
from .realtime import SyncChannelManager, sync_channel_manager
from .session_manager import SessionManager, UserProfile

__all__ = [
    "AICompletionError",
    "AIService",
    "AlreadyReportedError",
    "AssetStore",
    "AssetStoreError",
    "AuthSession",
    "CollectionMirror",
    "ConcurrentUpdateError",
    "Document",
    "DocumentExistsError",
    "DocumentNotFoundError",
    "DocumentStore",
    "EmailAlreadyInUseError",
    "EmpathyRating",
    "ExtractionResult",
    "IdentityError",
    "IdentityProvider",
    "InvalidAssetError",
    "InvalidCredentialsError",
    "InvalidFileDataError",
    "InvalidInputError",
    "InvalidTokenError",
    "LibraryContext",
    "MutationFacade",
    "NotAuthenticatedError",
    "PermissionDeniedError",
    "Principal",
    "ProfanityError",
    "ResourceAccessDeniedError",
    "ResourceNotFoundError",
    "SERVER_TIMESTAMP",
    "SessionManager",
    "Snapshot",
    "SpacesConfigurationError",
    "StoreError",
    "SyncChannelManager",
    "UserProfile",
    "WeakPasswordError",
    "build_asset_store",
    "set_ai_client",
    "sync_channel_manager",
]
