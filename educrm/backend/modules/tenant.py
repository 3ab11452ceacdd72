import logging
import re
from typing import Optional
from uuid import UUID

from ..config.config import settings
from ..models.db_models import UserProfile

logger = logging.getLogger(__name__)

_IPV4 = re.compile(r"^\d+\.\d+\.\d+\.\d+$")


def resolve_subdomain(hostname: Optional[str]) -> Optional[str]:
    """
    Maps a request host to a tenant slug.

    Local hosts (localhost, 192.168.*, bare IPv4) map to the default tenant,
    the root domain itself maps to no tenant, and anything else uses its first
    label: "lincoln.educrm.app" -> "lincoln".
    """
    if not hostname:
        return None
    host = hostname.split(":", 1)[0].strip().lower()
    if not host:
        return None

    if host == "localhost" or host.startswith("192.168") or _IPV4.match(host):
        return settings.DEFAULT_TENANT_SLUG

    root = settings.ROOT_DOMAIN.lower()
    if host in (root, f"www.{root}"):
        return None

    parts = host.split(".")
    if len(parts) >= 2:
        return parts[0]
    return None


def validate_tenant_boundary(profile: UserProfile, school_id: Optional[UUID]) -> bool:
    """
    True when the profile may act on rows of the given school.
    super_admin is the only role that crosses tenants.
    """
    if profile.user_type == "super_admin":
        return True
    if profile.school_id is None or profile.school_id != school_id:
        logger.warning(
            f"Tenant boundary violation: user '{profile.id}' (school {profile.school_id}) "
            f"tried to access school {school_id}."
        )
        return False
    return True
