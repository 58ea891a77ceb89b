"""
Repositories package for database operations

Provides:
- Store: async storage interface (SupabaseStore in production)
- TicketRepository: versioned ticket writes, escalations, messages, attachments
- DirectoryRepository: user / department / college lookups
- EnrichmentRepository: AI predictions, embeddings, OCR text
"""
from campusdesk.repositories.base_repository import Store, Tables
from campusdesk.repositories.supabase_store import SupabaseStore
from campusdesk.repositories.ticket_repository import TicketRepository
from campusdesk.repositories.directory_repository import DirectoryRepository
from campusdesk.repositories.enrichment_repository import EnrichmentRepository

__all__ = [
    "Store",
    "Tables",
    "SupabaseStore",
    "TicketRepository",
    "DirectoryRepository",
    "EnrichmentRepository",
]
