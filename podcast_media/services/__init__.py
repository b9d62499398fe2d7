"""
Services package - Business Logic Layer

Contains all business logic separated from HTTP/API concerns.
"""
from podcast_media.services.media_orchestrator import MediaOrchestrator, get_media_orchestrator

__all__ = ["MediaOrchestrator", "get_media_orchestrator"]
