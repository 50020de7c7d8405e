"""
Customer and user lookups plus quotation numbering.

These are the collaborators the quotation assembler consults while
building a draft.
"""
import logging
import random
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional

from visit_pipeline.core.config import Settings, get_settings
from visit_pipeline.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def generate_quotation_number() -> str:
    """Q-<epoch millis>-<3 base-36 chars>, e.g. Q-1729331200000-K3Z."""
    timestamp = int(time.time() * 1000)
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=3))
    return f"Q-{timestamp}-{suffix}"


class CustomerDirectory:
    """Customer identity records, deduplicated by mobile number."""

    def __init__(self, store: DocumentStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.collection = settings.mongo_customers_collection

    async def find_by_mobile(self, mobile: str) -> Optional[Dict[str, Any]]:
        if not mobile:
            return None
        matches = await self.store.find(self.collection, {"mobile": mobile}, limit=1)
        return matches[0] if matches else None

    async def create(self, customer_data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.utcnow()
        document = {
            **customer_data,
            "profileCompleteness": "full",
            "createdFrom": "site_visit",
            "createdAt": now,
            "updatedAt": now,
        }
        customer_id = await self.store.create(self.collection, document)
        logger.info(f"Customer created from site visit: {customer_id}")
        return {**document, "id": customer_id}


class UserDirectory:
    """Resolves user ids to something a customer can read on a quotation."""

    def __init__(self, store: DocumentStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.collection = settings.mongo_users_collection

    async def get_display_name(self, user_id: str) -> str:
        """Display name, else email, else the id itself."""
        try:
            user = await self.store.get(self.collection, user_id)
        except Exception as e:
            logger.warning(f"Display name lookup failed for {user_id}: {e}")
            return user_id
        if not user:
            return user_id
        return user.get("displayName") or user.get("email") or user_id
