"""
Database models - import all models here so Alembic can discover them.
"""
from nobre_hub.models.user import User
from nobre_hub.models.lead import Lead
from nobre_hub.models.conversation import Conversation
from nobre_hub.models.message import Message
from nobre_hub.models.interaction import Interaction
from nobre_hub.models.role_access import RoleAccess
from nobre_hub.models.notification_preference import NotificationPreference

__all__ = [
    "User",
    "Lead",
    "Conversation",
    "Message",
    "Interaction",
    "RoleAccess",
    "NotificationPreference",
]
