"""Staff onboarding and offboarding.

Creating a staff member may also provision accounts outside the local database:
an identity-provider login (app access) and an OmniStack user (communication
or app access). Which of those happen is decided by the provisioning policy
registered for the client's type.

All local writes of one onboarding run in a single transaction; accounts
already created upstream are not compensated when a later step fails.
"""
from __future__ import annotations

import enum
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from crm_admin.core.errors import (
    ConfigurationError,
    InternalError,
    NotFound,
    ServiceError,
    ValidationError,
)
from crm_admin.integrations.identity_provider import IdentityProviderClient
from crm_admin.integrations.omnistack import REGISTRATION_SOURCE_MANUAL, OmniStackGateway
from crm_admin.models.client import Client, ClientType
from crm_admin.models.staff import Staff, StaffRole, StaffStatus
from crm_admin.models.user import User
from crm_admin.services.passwords import hash_password

logger = logging.getLogger(__name__)

EMPLOYEE_ID_PREFIX = "EMP-"
EMPLOYEE_ID_ALPHABET = string.ascii_uppercase + string.digits
EMPLOYEE_ID_LENGTH = 6
SALES_ASSOCIATE_SUB_ROLE = "Sales Associate"
LINKED_USER_ROLES = ("STAFF", "SALES")
UPDATABLE_FIELDS = frozenset(
    {
        "department_id",
        "first_name",
        "last_name",
        "email",
        "phone",
        "role",
        "sub_role",
        "status",
        "date_of_join",
        "can_access_app",
        "performance_score",
        "communication_preferences",
        "notes",
        "address",
        "emergency_contact",
        "avatar",
    }
)

GatewayFactory = Callable[[str], OmniStackGateway]


class ProvisioningState(str, enum.Enum):
    REQUESTED = "REQUESTED"
    VALIDATING = "VALIDATING"
    REJECTED = "REJECTED"
    PROVISIONING = "PROVISIONING"
    ROLLED_BACK = "ROLLED_BACK"
    COMMITTED = "COMMITTED"


@dataclass
class StaffCreateCommand:
    client_id: str
    first_name: str
    last_name: str
    date_of_join: datetime
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    communication_preferences: Optional[Dict[str, bool]] = None
    can_access_app: bool = False
    department_id: Optional[str] = None
    role: str = StaffRole.STAFF.value
    sub_role: Optional[str] = None
    status: str = StaffStatus.ACTIVE.value
    notes: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    avatar: Optional[str] = None
    performance_score: Optional[float] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class ProvisionedAccount:
    omnistack_id: Optional[str]
    supabase_id: Optional[str]
    note: str


@dataclass
class ProvisioningContext:
    db: Session
    client: Client
    staff: Staff
    command: StaffCreateCommand
    gateway_factory: GatewayFactory
    identity_provider_factory: Callable[[], IdentityProviderClient]

    def gateway(self) -> OmniStackGateway:
        return self.gateway_factory(self.client.omni_gateway_api_key)


class ProvisioningPolicy(Protocol):
    def staff_sub_role(self, command: StaffCreateCommand) -> Optional[str]:
        ...

    def validate(self, ctx: ProvisioningContext) -> None:
        ...

    def provision(self, ctx: ProvisioningContext) -> Optional[ProvisionedAccount]:
        ...


class BookingCommunicationPolicy:
    """Booking clients never get app access; a password only buys an OmniStack
    account used for guest/staff communications."""

    def staff_sub_role(self, command: StaffCreateCommand) -> Optional[str]:
        return command.sub_role

    def validate(self, ctx: ProvisioningContext) -> None:
        command = ctx.command
        if not command.email:
            raise ValidationError("Email is required for staff of booking clients")
        preferences = command.communication_preferences or {}
        if preferences.get("sms") and not command.phone:
            raise ValidationError("Phone number is required for SMS communications")

    def provision(self, ctx: ProvisioningContext) -> Optional[ProvisionedAccount]:
        command = ctx.command
        if not command.password:
            return None
        if not ctx.client.omni_gateway_api_key:
            logger.warning(
                "communication account skipped: client has no gateway key client_id=%s staff_id=%s",
                ctx.client.id,
                ctx.staff.id,
            )
            return None

        _ensure_user_email_available(ctx.db, command.email)
        gateway_user = ctx.gateway().create_user(
            name=command.first_name,
            surname=command.last_name,
            email=command.email,
            password=command.password,
            registration_source=REGISTRATION_SOURCE_MANUAL,
            external_ids={"staffId": ctx.staff.id},
        )
        omnistack_id = gateway_user["_id"]

        _create_local_user(
            ctx,
            role="STAFF",
            supabase_id=None,
            external_ids={"supabase": None, "omnistack": omnistack_id},
        )
        return ProvisionedAccount(
            omnistack_id=omnistack_id,
            supabase_id=None,
            note=f"Communication account created on {_now_iso()}",
        )


class AppAccessPolicy:
    """Sales associates: identity-provider login plus a mirrored OmniStack user."""

    def _requested(self, command: StaffCreateCommand) -> bool:
        return bool(command.can_access_app and command.password)

    def staff_sub_role(self, command: StaffCreateCommand) -> Optional[str]:
        return SALES_ASSOCIATE_SUB_ROLE if command.can_access_app else command.sub_role

    def validate(self, ctx: ProvisioningContext) -> None:
        if self._requested(ctx.command) and not ctx.command.email:
            raise ValidationError("Email is required for app access")

    def provision(self, ctx: ProvisioningContext) -> Optional[ProvisionedAccount]:
        command = ctx.command
        if not self._requested(command):
            return None
        if not ctx.client.omni_gateway_api_key:
            raise ConfigurationError("Client has no gateway API key configured")

        _ensure_user_email_available(ctx.db, command.email)
        identity_user = ctx.identity_provider_factory().create_user(command.email, command.password)
        supabase_id = identity_user["id"]

        gateway_user = ctx.gateway().create_user(
            name=command.first_name,
            surname=command.last_name,
            email=command.email,
            password=command.password,
            registration_source=REGISTRATION_SOURCE_MANUAL,
            external_ids={"staffId": ctx.staff.id, "supabaseId": supabase_id},
        )
        omnistack_id = gateway_user["_id"]

        _create_local_user(
            ctx,
            role="SALES",
            supabase_id=supabase_id,
            external_ids={"supabase": supabase_id, "omnistack": omnistack_id},
        )
        return ProvisionedAccount(
            omnistack_id=omnistack_id,
            supabase_id=supabase_id,
            note=f"Sales associate app access granted. User accounts created on {_now_iso()}",
        )


DEFAULT_POLICY: ProvisioningPolicy = AppAccessPolicy()
PROVISIONING_POLICIES: Dict[ClientType, ProvisioningPolicy] = {
    ClientType.BOOKING: BookingCommunicationPolicy(),
}


def register_policy(client_type: ClientType, policy: ProvisioningPolicy) -> None:
    PROVISIONING_POLICIES[client_type] = policy


def resolve_policy(client_type: Optional[ClientType]) -> ProvisioningPolicy:
    if client_type is None:
        return DEFAULT_POLICY
    return PROVISIONING_POLICIES.get(client_type, DEFAULT_POLICY)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _append_note(existing: Optional[str], note: str) -> str:
    if not existing:
        return note
    return f"{existing}\n{note}"


def _ensure_user_email_available(db: Session, email: str) -> None:
    if db.query(User.id).filter(User.email == email).first() is not None:
        raise ValidationError("A user with this email already exists")


def _create_local_user(
    ctx: ProvisioningContext,
    *,
    role: str,
    supabase_id: Optional[str],
    external_ids: Dict[str, Optional[str]],
) -> User:
    command = ctx.command
    user = User(
        email=command.email,
        name=command.full_name,
        supabase_id=supabase_id,
        role=role,
        client_id=ctx.client.id,
        password_hash=hash_password(command.password),
        external_ids=external_ids,
        communication_preferences=dict(command.communication_preferences or {}),
    )
    ctx.db.add(user)
    ctx.db.flush()
    return user


def generate_employee_id(db: Session, attempts: int = 10) -> str:
    for _ in range(attempts):
        suffix = "".join(secrets.choice(EMPLOYEE_ID_ALPHABET) for _ in range(EMPLOYEE_ID_LENGTH))
        candidate = f"{EMPLOYEE_ID_PREFIX}{suffix}"
        if db.query(Staff.id).filter(Staff.employee_id == candidate).first() is None:
            return candidate
    raise InternalError("Could not generate a unique employee id")


def _log_state(state: ProvisioningState, **fields: Any) -> None:
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.info("staff provisioning state=%s %s", state.value, details)


def _default_identity_provider() -> IdentityProviderClient:
    return IdentityProviderClient()


def create_staff(
    db: Session,
    command: StaffCreateCommand,
    *,
    gateway_factory: GatewayFactory = OmniStackGateway,
    identity_provider_factory: Callable[[], IdentityProviderClient] = _default_identity_provider,
) -> Staff:
    _log_state(ProvisioningState.REQUESTED, client_id=command.client_id)

    client = db.query(Client).filter(Client.id == command.client_id).first()
    if not client:
        _log_state(ProvisioningState.REJECTED, client_id=command.client_id, reason="client_not_found")
        raise NotFound("Client not found")

    policy = resolve_policy(client.client_type)

    try:
        staff = Staff(
            client_id=client.id,
            department_id=command.department_id,
            employee_id=generate_employee_id(db),
            first_name=command.first_name,
            last_name=command.last_name,
            email=command.email,
            phone=command.phone,
            role=command.role,
            sub_role=policy.staff_sub_role(command),
            status=command.status,
            date_of_join=command.date_of_join,
            can_access_app=bool(command.can_access_app) and client.client_type != ClientType.BOOKING,
            performance_score=command.performance_score,
            communication_preferences=command.communication_preferences,
            documents={"externalIds": {}},
            notes=command.notes,
            address=command.address,
            emergency_contact=command.emergency_contact,
            avatar=command.avatar,
        )
        db.add(staff)
        db.flush()

        ctx = ProvisioningContext(
            db=db,
            client=client,
            staff=staff,
            command=command,
            gateway_factory=gateway_factory,
            identity_provider_factory=identity_provider_factory,
        )

        _log_state(ProvisioningState.VALIDATING, client_id=client.id, staff_id=staff.id)
        policy.validate(ctx)

        _log_state(ProvisioningState.PROVISIONING, client_id=client.id, staff_id=staff.id)
        account = policy.provision(ctx)
        if account is not None:
            documents = dict(staff.documents or {})
            documents["externalIds"] = {
                "omnistack": account.omnistack_id,
                "supabase": account.supabase_id,
            }
            staff.documents = documents
            staff.notes = _append_note(staff.notes, account.note)
            db.flush()

        db.commit()
    except (ValidationError, ConfigurationError) as exc:
        db.rollback()
        _log_state(ProvisioningState.REJECTED, client_id=client.id, reason=exc.message)
        raise
    except Exception:
        db.rollback()
        logger.exception("staff provisioning failed client_id=%s", client.id)
        _log_state(ProvisioningState.ROLLED_BACK, client_id=client.id)
        raise

    db.refresh(staff)
    _log_state(ProvisioningState.COMMITTED, client_id=client.id, staff_id=staff.id)
    return staff


def get_staff_or_404(db: Session, staff_id: str) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if not staff:
        raise NotFound("Staff member not found")
    return staff


def _has_linked_account(staff: Staff) -> bool:
    return any(staff.external_ids.values())


def _find_linked_user(db: Session, staff: Staff, email: Optional[str]) -> Optional[User]:
    """The account user provisioned for this staff: same email, same client, STAFF/SALES role."""
    if not email or not _has_linked_account(staff):
        return None
    return (
        db.query(User)
        .filter(
            User.email == email,
            User.client_id == staff.client_id,
            User.role.in_(LINKED_USER_ROLES),
        )
        .first()
    )


def update_staff(db: Session, staff_id: str, changes: Dict[str, Any]) -> Staff:
    staff = get_staff_or_404(db, staff_id)
    previous_preferences = staff.communication_preferences
    previous_email = staff.email

    for key in changes:
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown staff field: {key}")
    if changes.get("email"):
        changes = {**changes, "email": changes["email"].strip().lower()}

    linked_user = _find_linked_user(db, staff, previous_email)
    new_email = changes.get("email", previous_email)
    if linked_user is not None and new_email != previous_email:
        if not new_email:
            raise ValidationError("Email is required while the staff member has a linked account")
        _ensure_user_email_available(db, new_email)

    for key, value in changes.items():
        setattr(staff, key, value)

    new_preferences = changes.get("communication_preferences", previous_preferences)
    if linked_user is not None:
        # the email is the only link between staff and user; keep both in one commit
        if new_email != previous_email:
            linked_user.email = new_email
        if "communication_preferences" in changes and new_preferences != previous_preferences:
            linked_user.communication_preferences = dict(new_preferences or {})
    elif "communication_preferences" in changes and new_preferences != previous_preferences:
        logger.debug("no linked user to sync preferences staff_id=%s", staff.id)

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(staff)

    if linked_user is not None:
        logger.info("linked user synced staff_id=%s user_id=%s", staff.id, linked_user.id)
    return staff


def _delete_linked_user(db: Session, staff: Staff) -> bool:
    user = _find_linked_user(db, staff, staff.email)
    if not user:
        return False
    db.delete(user)
    db.flush()
    return True


def delete_staff(
    db: Session,
    staff_id: str,
    *,
    gateway_factory: GatewayFactory = OmniStackGateway,
) -> None:
    staff = get_staff_or_404(db, staff_id)
    omnistack_id = staff.external_ids.get("omnistack")
    client = staff.client
    api_key = client.omni_gateway_api_key if client else None

    if omnistack_id and api_key:
        try:
            gateway_factory(api_key).delete_user(omnistack_id)
        except ServiceError as exc:
            logger.warning(
                "gateway user delete failed, continuing staff_id=%s external_id=%s error=%s",
                staff.id,
                omnistack_id,
                exc.message,
            )

    if staff.email:
        try:
            if _delete_linked_user(db, staff):
                db.commit()
                logger.info("linked user deleted staff_id=%s", staff.id)
        except Exception:
            db.rollback()
            logger.exception("linked user delete failed, continuing staff_id=%s", staff_id)

    try:
        staff = get_staff_or_404(db, staff_id)
        db.delete(staff)
        db.commit()
    except NotFound:
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("staff delete failed staff_id=%s", staff_id)
        raise InternalError("Failed to delete staff member") from exc

    logger.info("staff deleted staff_id=%s", staff_id)
