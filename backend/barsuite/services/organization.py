"""
Organization service for managing organizations (venues) and ownership.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from barsuite.core.exceptions import (
    ConflictError,
    MembershipNotFoundError,
    BadRequestError,
    OrganizationNameExistsError,
    OrganizationNotFoundError,
    SubscriptionNotEligibleError,
)
from barsuite.models.organization import (
    Organization,
    OrganizationMember,
    DEFAULT_SETTINGS,
    ROLE_OWNER,
    ROLE_MANAGER,
)
from barsuite.models.subscription import Subscription, STATUS_TRIAL, STATUS_ACTIVE
from barsuite.models.user import User
from barsuite.services.access import OrgOperation, authorize, get_membership
from barsuite.services.subscription import get_live_subscription

logger = logging.getLogger(__name__)

# Subscription statuses that may back a new organization
ELIGIBLE_SUBSCRIPTION_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE)


def get_organization(db: Session, org_id: int) -> Organization:
    organization = db.query(Organization).filter(Organization.id == org_id).first()
    if not organization:
        raise OrganizationNotFoundError(org_id)
    return organization


def _resolve_subscription(db: Session, owner: User, subscription_id: Optional[int]) -> Subscription:
    if subscription_id is None:
        subscription = get_live_subscription(db, owner.id)
    else:
        subscription = db.query(Subscription).filter(Subscription.id == subscription_id).first()

    if not subscription or subscription.user_id != owner.id:
        raise SubscriptionNotEligibleError("An active subscription is required to create an organization")
    if subscription.status not in ELIGIBLE_SUBSCRIPTION_STATUSES:
        raise SubscriptionNotEligibleError(
            f"Subscription with status {subscription.status} cannot back a new organization"
        )
    if db.query(Organization.id).filter(Organization.subscription_id == subscription.id).first():
        raise SubscriptionNotEligibleError("This subscription already backs another organization")
    return subscription


def create_organization(
    db: Session,
    owner: User,
    name: str,
    subscription_id: Optional[int] = None,
    settings: Optional[dict] = None,
) -> Organization:
    """
    Create an organization and its owner membership in one transaction.

    Args:
        db: Database session
        owner: Creating user, becomes the owner
        name: Organization name, unique per owner
        subscription_id: Subscription backing the organization; defaults to
            the owner's live subscription
        settings: Overrides for the default settings

    Returns:
        Created Organization

    Raises:
        SubscriptionNotEligibleError: No usable subscription
        OrganizationNameExistsError: Owner already has an organization with this name
    """
    subscription = _resolve_subscription(db, owner, subscription_id)

    if db.query(Organization.id).filter(
        Organization.owner_id == owner.id,
        Organization.name == name
    ).first():
        raise OrganizationNameExistsError(name)

    organization = Organization(
        name=name,
        owner_id=owner.id,
        subscription_id=subscription.id,
        settings={**DEFAULT_SETTINGS, **(settings or {})},
    )
    try:
        db.add(organization)
        db.flush()  # Flush to get the ID

        db.add(OrganizationMember(
            organization_id=organization.id,
            user_id=owner.id,
            role=ROLE_OWNER,
            invited_by=None  # Self-created
        ))
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Organization creation for user {owner.id} rolled back: {e.orig}")
        raise ConflictError("Organization conflicts with an existing record") from None
    db.refresh(organization)

    logger.info(f"User {owner.id} created organization {organization.id}")
    return organization


def view_organization(db: Session, actor: User, org_id: int) -> tuple[Organization, OrganizationMember]:
    membership = authorize(db, actor, org_id, OrgOperation.VIEW_ORGANIZATION)
    return get_organization(db, org_id), membership


def update_organization(db: Session, actor: User, org_id: int, patch: dict) -> Organization:
    """
    Update organization name and/or settings (owner only).

    Settings are merged into the stored settings rather than replacing them.
    """
    authorize(db, actor, org_id, OrgOperation.UPDATE_ORGANIZATION)
    organization = get_organization(db, org_id)

    name = patch.get("name")
    if name and name != organization.name:
        if db.query(Organization.id).filter(
            Organization.owner_id == organization.owner_id,
            Organization.name == name
        ).first():
            raise OrganizationNameExistsError(name)
        organization.name = name

    if patch.get("settings"):
        organization.settings = {**(organization.settings or {}), **patch["settings"]}

    db.commit()
    db.refresh(organization)
    return organization


def delete_organization(db: Session, actor: User, org_id: int) -> None:
    """Delete an organization; members and invitations go with it."""
    authorize(db, actor, org_id, OrgOperation.DELETE_ORGANIZATION)
    organization = get_organization(db, org_id)
    db.delete(organization)
    db.commit()

    logger.info(f"User {actor.id} deleted organization {org_id}")


def transfer_ownership(db: Session, actor: User, org_id: int, new_owner_id: int) -> Organization:
    """
    Hand ownership to another member.

    The new owner is promoted, the previous owner becomes a manager and
    owner_id is updated, all in one commit, so the organization always has
    exactly one owner.

    Raises:
        MembershipNotFoundError: Target is not a member
        BadRequestError: Target is already the owner
    """
    current = authorize(db, actor, org_id, OrgOperation.TRANSFER_OWNERSHIP)
    if new_owner_id == actor.id:
        raise BadRequestError("You already own this organization")

    target = get_membership(db, org_id, new_owner_id)
    if not target:
        raise MembershipNotFoundError(org_id, new_owner_id)

    organization = get_organization(db, org_id)
    if db.query(Organization.id).filter(
        Organization.owner_id == new_owner_id,
        Organization.name == organization.name
    ).first():
        raise ConflictError(f"New owner already owns an organization named \"{organization.name}\"")

    target.role = ROLE_OWNER
    current.role = ROLE_MANAGER
    organization.owner_id = new_owner_id
    db.commit()
    db.refresh(organization)

    logger.info(f"Ownership of organization {org_id} transferred from {actor.id} to {new_owner_id}")
    return organization
