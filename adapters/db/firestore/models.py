"""Domain models for Firestore entities."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app_platform.contracts import AccountRole, AccountStatus, InvitePurpose


@dataclass
class BaseEntity:
    """Base entity with common fields."""

    id: Optional[str] = field(default=None, kw_only=True)
    created_at: Optional[int] = field(default=None, kw_only=True)
    updated_at: Optional[int] = field(default=None, kw_only=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to dictionary, omitting unset values."""

        result = {}
        for key, value in self.__dict__.items():
            if value is not None and key != "id":
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create entity from dictionary."""

        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Organization(BaseEntity):
    """Organization aggregate root; owns the branch sequence counter."""

    organization_id: str
    name: str
    slug: str
    owner_id: str
    branch_count: int = 0
    cashier_count: int = 0
    next_branch_number: int = 1
    registration_number: Optional[str] = None
    address: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.organization_id:
            raise ValueError("organization_id is required")
        if not self.name:
            raise ValueError("organization name is required")
        if not self.slug:
            raise ValueError("slug is required")
        if not self.owner_id:
            raise ValueError("owner_id is required")


@dataclass
class Branch(BaseEntity):
    """Branch under an organization; owns the cashier sequence counter."""

    branch_id: str
    organization_id: str
    name: str
    slug: str
    username: str
    branch_number: int
    manager_account_id: str = ""
    manager_id: Optional[str] = None
    manager_name: Optional[str] = None
    manager_contact: Optional[Dict[str, Any]] = None
    next_cashier_number: int = 1

    def __post_init__(self) -> None:
        if not self.branch_id or not self.organization_id:
            raise ValueError("branch_id and organization_id are required")
        if not self.username:
            raise ValueError("username is required")
        if self.branch_number < 1:
            raise ValueError("branch_number must be positive")
        if not self.manager_account_id:
            self.manager_account_id = manager_slot_id(self.branch_id)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        # the manager pointer is nullable and must round-trip as an explicit null
        data["manager_id"] = self.manager_id
        return data


@dataclass
class Cashier(BaseEntity):
    """Cashier listing row under a branch; the identity lives in ``accounts``."""

    cashier_id: str
    organization_id: str
    branch_id: str
    account_id: str
    username: str
    display_name: str
    cashier_number: int
    status: str = AccountStatus.ACTIVE.value

    def __post_init__(self) -> None:
        if not self.cashier_id or not self.account_id:
            raise ValueError("cashier_id and account_id are required")
        if not self.organization_id or not self.branch_id:
            raise ValueError("organization_id and branch_id are required")
        if self.cashier_number < 1:
            raise ValueError("cashier_number must be positive")


@dataclass
class Account(BaseEntity):
    """Profile half of an account identity; the document id equals the provider uid."""

    account_id: str
    role: str
    status: str = AccountStatus.PENDING.value
    account_type: Optional[str] = None
    organization_id: Optional[str] = None
    branch_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    login_email: Optional[str] = None
    phone: Optional[str] = None
    display_name: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    permissions_version: int = 0
    credential_hash: Optional[str] = None
    credential_algorithm: Optional[str] = None
    credential_updated_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.account_id:
            raise ValueError("account_id is required")
        if self.role not in {item.value for item in AccountRole}:
            raise ValueError(f"Unsupported account role: {self.role}")
        if self.status not in {item.value for item in AccountStatus}:
            raise ValueError(f"Unsupported account status: {self.status}")
        if not isinstance(self.permissions, list):
            self.permissions = list(self.permissions) if self.permissions else []

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE.value

    @property
    def is_disabled(self) -> bool:
        return self.status == AccountStatus.DISABLED.value

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        # credential fields are cleared by writing explicit nulls
        data["credential_hash"] = self.credential_hash
        data["credential_algorithm"] = self.credential_algorithm
        return data


@dataclass
class InviteToken(BaseEntity):
    """One-time credential setup token; keyed by the digest of the raw token."""

    token_hash: str
    role: str
    email: str
    expires_at_ms: int
    name: str = ""
    purpose: str = InvitePurpose.ONBOARDING.value
    account_id: Optional[str] = None
    used: bool = False
    used_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.token_hash:
            raise ValueError("token_hash is required")
        if not self.email:
            raise ValueError("email is required")
        if self.purpose not in {item.value for item in InvitePurpose}:
            raise ValueError(f"Unsupported invite purpose: {self.purpose}")

    def is_expired(self, at_ms: int) -> bool:
        return at_ms >= self.expires_at_ms


@dataclass
class SessionRecord(BaseEntity):
    """Opaque cookie session for role accounts."""

    session_id: str
    account_id: str
    role: str
    cookie_name: str
    expires_at_ms: int

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id is required")
        if not self.account_id:
            raise ValueError("account_id is required")

    def is_expired(self, at_ms: int) -> bool:
        return at_ms >= self.expires_at_ms


def manager_slot_id(branch_id: str) -> str:
    """Fixed account id reused by every manager assigned to ``branch_id``."""

    return f"{branch_id}-manager"


def _hydrate(factory, doc_id: str, data: Dict[str, Any]):
    entity = factory.from_dict(data)
    entity.id = doc_id
    return entity


def create_organization(doc_id: str, data: Dict[str, Any]) -> Organization:
    """Create Organization from a document id and data."""

    return _hydrate(Organization, doc_id, {"organization_id": doc_id, **data})


def create_branch(doc_id: str, data: Dict[str, Any]) -> Branch:
    return _hydrate(Branch, doc_id, {"branch_id": doc_id, **data})


def create_cashier(doc_id: str, data: Dict[str, Any]) -> Cashier:
    return _hydrate(Cashier, doc_id, {"cashier_id": doc_id, **data})


def create_account(doc_id: str, data: Dict[str, Any]) -> Account:
    """Create Account from a document id and data."""

    return _hydrate(Account, doc_id, {"account_id": doc_id, **data})


def create_invite_token(doc_id: str, data: Dict[str, Any]) -> InviteToken:
    return _hydrate(InviteToken, doc_id, {"token_hash": doc_id, **data})


def create_session_record(doc_id: str, data: Dict[str, Any]) -> SessionRecord:
    return _hydrate(SessionRecord, doc_id, {"session_id": doc_id, **data})
