"""
Unizo data models.
"""

from typing import Any, Dict, List, Optional, Set

from pydantic import AliasChoices, AliasPath, BaseModel, ConfigDict, Field, field_validator, model_validator


WATCH_HOOK_CONFIG_TYPE = "SCM_WATCH_HOOK"


class UnizoConfig(BaseModel):
    """Connection and credential settings for the Unizo platform."""
    api_url: str
    api_key: str
    auth_user_id: Optional[str] = None
    integration_id: Optional[str] = None
    event_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    source_channel: str = "API"
    request_timeout: float = 10.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    page_size: int = 100

    def __repr__(self) -> str:
        return f"UnizoConfig(api_url={self.api_url!r}, integration_id={self.integration_id!r})"

    __str__ = __repr__


class Repository(BaseModel):
    """Repository as listed by the Unizo SCM API."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    full_name: str = Field(default="", validation_alias=AliasChoices("fullName", "full_name"))
    name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @model_validator(mode="after")
    def default_full_name(self):
        if not self.full_name and self.name:
            self.full_name = self.name
        return self


class RepositoryPage(BaseModel):
    """One page of repositories plus the opaque cursor for the next one."""
    items: List[Repository] = Field(default_factory=list)
    next_page_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)

    @classmethod
    def from_response(cls, data: Any) -> "RepositoryPage":
        if not isinstance(data, dict):
            return cls()
        pagination = data.get("pagination") or {}
        token = pagination.get("next") if isinstance(pagination, dict) else None
        return cls(
            items=[Repository.model_validate(item) for item in data.get("items") or []],
            next_page_token=str(token) if token not in (None, "") else None,
        )


class OrganizationWebhookConfig(BaseModel):
    """SCM_WATCH_HOOK configuration of an organization."""
    model_config = ConfigDict(frozen=True)

    url: str
    extra: Dict[str, Any] = Field(default_factory=dict)

    @property
    def secret(self) -> Optional[str]:
        return self.extra.get("secret")

    @property
    def content_type(self) -> str:
        return self.extra.get("contentType") or "application/json"

    @property
    def secured_ssl_required(self) -> bool:
        return bool(self.extra.get("securedSSLRequired", False))

    @classmethod
    def from_configurations(cls, configurations: Any) -> Optional["OrganizationWebhookConfig"]:
        """Pick the watch-hook entry out of an organization's configuration list."""
        if isinstance(configurations, dict):
            configurations = configurations.get("data") or configurations.get("items") or []
        for entry in configurations or []:
            if isinstance(entry, dict) and entry.get("type") == WATCH_HOOK_CONFIG_TYPE:
                data = entry.get("data") or {}
                if not data.get("url"):
                    return None
                return cls(url=data["url"], extra=dict(data))
        return None


class WebhookRegistrationRequest(BaseModel):
    """Ephemeral request to create a repository watch hook."""
    repository_id: str
    organization_id: str
    target_url: str
    secret: Optional[str] = None
    content_type: str = "application/json"
    secured_ssl_required: bool = False

    def to_watch_payload(self) -> Dict[str, Any]:
        hook_config: Dict[str, Any] = {
            "url": self.target_url,
            "securedSSLRequired": self.secured_ssl_required,
            "contentType": self.content_type,
        }
        if self.secret:
            hook_config["secret"] = self.secret
        return {
            "name": f"{self.repository_id}-watch",
            "description": f"Watch for {self.repository_id} repository",
            "type": "HOOK",
            "resource": {
                "type": "REPOSITORY",
                "repository": {"id": self.repository_id},
                "organization": {"id": self.organization_id},
                "config": hook_config,
            },
        }


class WebhookUpdate(BaseModel):
    """Partial change to an existing watch hook's delivery settings."""
    model_config = ConfigDict(populate_by_name=True)

    target_url: Optional[str] = Field(default=None, alias="url")
    secret: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    secured_ssl_required: Optional[bool] = Field(default=None, alias="securedSSLRequired")

    def has_changes(self) -> bool:
        return bool(self.model_dump(exclude_none=True))

    def to_watch_payload(self) -> Dict[str, Any]:
        return {"resource": {"config": self.model_dump(by_alias=True, exclude_none=True)}}


class WebhookRegistration(BaseModel):
    """Watch hook as reported back by Unizo."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    webhook_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "webhook_id", "webhookId"))
    status: str = Field(default="unknown", validation_alias=AliasChoices("status", "state"))
    repository_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("resource", "repository", "id"), "repository_id"),
    )
    target_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("resource", "config", "url"), AliasPath("config", "url"), "target_url"),
    )

    @field_validator("webhook_id", "repository_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return str(v) if v is not None else v


class EventSubscription(BaseModel):
    """Subscription to Unizo's normalized event taxonomy for one repository."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subscription_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("id", "subscription_id", "subscriptionId")
    )
    repository_id: str = Field(validation_alias=AliasChoices("repository_id", "repositoryId"))
    event_types: Set[str] = Field(default_factory=set, validation_alias=AliasChoices("event_types", "eventTypes"))
    callback_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("callback_url", "callbackUrl"))
    secret: Optional[str] = Field(default=None, exclude=True)
    active: bool = True

    @field_validator("subscription_id", "repository_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return str(v) if v is not None else v


class RegistrationSummary(BaseModel):
    """Counts accumulated over one bulk registration run."""
    organization_id: str
    total_repositories: int = 0
    registered: int = 0
    failed: int = 0
    partial: bool = False

    @property
    def balanced(self) -> bool:
        return self.registered + self.failed == self.total_repositories
