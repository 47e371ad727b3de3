# SessionGuard Services
from sessionguard.services.admin_reporting import AdminReportingService, evaluate_health
from sessionguard.services.logout import LogoutService
from sessionguard.services.ownership_gate import OwnershipGate, OwnershipRule
from sessionguard.services.reaper import RevocationReaper
from sessionguard.services.resource_directory import ResourceDirectory, ResourceKind
from sessionguard.services.revocation_store import RevocationStore, hash_token
from sessionguard.services.session_gate import AuthContext, SessionGate
from sessionguard.services.token_codec import Principal, TokenCodec, get_token_codec
from sessionguard.services.user_directory import UserDirectory

__all__ = [
    "AdminReportingService",
    "AuthContext",
    "LogoutService",
    "OwnershipGate",
    "OwnershipRule",
    "Principal",
    "ResourceDirectory",
    "ResourceKind",
    "RevocationReaper",
    "RevocationStore",
    "SessionGate",
    "TokenCodec",
    "UserDirectory",
    "evaluate_health",
    "get_token_codec",
    "hash_token",
]
