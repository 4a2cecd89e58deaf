"""
Configuration module for M365 Group Settings.
Defines authentication settings, Graph endpoints and the Group.Unified key set.
"""

from __future__ import annotations

import os
import json
from dataclasses import dataclass, field
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Falls back to M365_CERT_PASSWORD, then a prompt

@dataclass
class SecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str = ""        # Falls back to M365_CLIENT_SECRET

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "https://graph.microsoft.com/Directory.ReadWrite.All",
        "https://graph.microsoft.com/Group.Read.All",
    ])

@dataclass
class AuthConfig:
    """Authentication configuration."""
    mode: str = "certificate"  # "certificate", "secret" or "delegated"
    certificate: Optional[CertificateAuth] = None
    secret: Optional[SecretAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"

REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 30.0

DEFAULT_PAGE_SIZE = 100
MAX_PAGES_PER_ENDPOINT = 100     # Safety cap on pagination loops

CERT_PASSWORD_ENV = "M365_CERT_PASSWORD"
CLIENT_SECRET_ENV = "M365_CLIENT_SECRET"


# ─── Group.Unified Settings ─────────────────────────────────────────────────

GROUP_UNIFIED_TEMPLATE = "Group.Unified"

ENABLE_GROUP_CREATION = "EnableGroupCreation"
GROUP_CREATION_ALLOWED_GROUP_ID = "GroupCreationAllowedGroupId"
USAGE_GUIDELINES_URL = "UsageGuidelinesUrl"
CUSTOM_BLOCKED_WORDS_LIST = "CustomBlockedWordsList"

# Keys defined by the Group.Unified template
GROUP_UNIFIED_PROPERTIES = frozenset({
    "CustomBlockedWordsList",
    "EnableMSStandardBlockedWords",
    "ClassificationDescriptions",
    "DefaultClassification",
    "PrefixSuffixNamingRequirement",
    "AllowGuestsToBeGroupOwner",
    "AllowGuestsToAccessGroups",
    "GuestUsageGuidelinesUrl",
    "GroupCreationAllowedGroupId",
    "AllowToAddGuests",
    "UsageGuidelinesUrl",
    "ClassificationList",
    "EnableGroupCreation",
    "NewUnifiedGroupWritebackDefault",
    "EnableMIPLabels",
})


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class ToolConfig:
    """Top-level configuration for a CLI invocation."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    template_name: str = GROUP_UNIFIED_TEMPLATE
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    what_if: bool = False         # Block and report writes instead of sending them
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str) -> "ToolConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "secret" in auth_data:
                s = auth_data["secret"]
                config.auth.secret = SecretAuth(
                    tenant_id=s["tenant_id"],
                    client_id=s["client_id"],
                    client_secret=s.get("client_secret", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
                if d.get("scopes"):
                    config.auth.delegated.scopes = list(d["scopes"])
        config.template_name = data.get("template_name", GROUP_UNIFIED_TEMPLATE)
        config.request_timeout_seconds = float(
            data.get("request_timeout_seconds", REQUEST_TIMEOUT_SECONDS)
        )
        config.what_if = data.get("what_if", False)
        config.verbose = data.get("verbose", False)
        return config

    def resolve_secrets(self) -> None:
        """Fill blank credentials from the environment."""
        if self.auth.certificate and not self.auth.certificate.certificate_password:
            self.auth.certificate.certificate_password = os.environ.get(CERT_PASSWORD_ENV, "")
        if self.auth.secret and not self.auth.secret.client_secret:
            self.auth.secret.client_secret = os.environ.get(CLIENT_SECRET_ENV, "")


# ─── Required Graph API Permissions ─────────────────────────────────────────

REQUIRED_PERMISSIONS = {
    "Directory.ReadWrite.All": "Create, update and delete the Group.Unified settings object",
    "Group.Read.All": "Resolve the group allowed to create Microsoft 365 groups",
}
