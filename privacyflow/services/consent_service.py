"""
Consent Management Service

Versioned consent text by locale, a deterministic content hash of the text a
user was shown, server-side validation of the four acknowledgements, and the
accept/revoke operations.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from privacyflow.config import settings
from privacyflow.exceptions import PersistenceError, UnauthenticatedError, ValidationError
from privacyflow.models.consent import UserConsent
from privacyflow.services.audit_service import log_consent_accepted, log_consent_revoked
from privacyflow.services.settings_service import get_user_settings, stage_settings_upsert, upsert_user_settings

logger = logging.getLogger(__name__)

CURRENT_CONSENT_VERSION = "v1.0"
FALLBACK_LOCALE = "en-GB"

# Acknowledgement fields in their fixed validation order
ACKNOWLEDGEMENTS = (
    ("acknowledged_ai_limitations", "I understand the AI is not a clinician and may make mistakes."),
    ("confirmed_not_emergency", "I am not in immediate danger and will use emergency services for emergencies."),
    ("confirmed_age_over_18", "I am 18 or older."),
    ("accepted_terms_privacy", "I accept the Terms of Service and Privacy Policy."),
)

VALIDATION_MESSAGES = {
    "acknowledged_ai_limitations": "You must acknowledge the AI limitations.",
    "confirmed_not_emergency": "You must confirm you are not in immediate danger.",
    "confirmed_age_over_18": "You must be 18 or older to use this app.",
    "accepted_terms_privacy": "You must accept the Terms of Service and Privacy Policy.",
}


@dataclass(frozen=True)
class Checkbox:
    id: str
    label: str


@dataclass(frozen=True)
class ConsentText:
    title: str
    bullets: tuple[str, ...]
    checkboxes: tuple[Checkbox, ...]
    continue_label: str = "Continue"
    cancel_label: str = "Cancel"

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "bullets": list(self.bullets),
            "checkboxes": [{"id": c.id, "label": c.label} for c in self.checkboxes],
            "continue_label": self.continue_label,
            "cancel_label": self.cancel_label,
        }


@dataclass(frozen=True)
class EmergencyContact:
    name: str
    number: str
    description: str


@dataclass
class ConsentValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


_CHECKBOXES = tuple(Checkbox(id=key, label=label) for key, label in ACKNOWLEDGEMENTS)

CONSENT_TEXT: dict[str, ConsentText] = {
    "en-GB": ConsentText(
        title="About this app",
        bullets=(
            "This is a self-help and educational support tool. It is not a clinician and may be wrong.",
            "This app cannot diagnose, treat, or respond to emergencies.",
            "If you are in immediate danger, call 999. For urgent emotional support in the UK, "
            "contact Samaritans at 116 123 (free, 24/7).",
            "You must be 18 or older to use this app.",
            "By continuing, you agree to our Terms of Service and Privacy Policy.",
        ),
        checkboxes=_CHECKBOXES,
    ),
    "en-US": ConsentText(
        title="About this app",
        bullets=(
            "This is a self-help and educational support tool. It is not a clinician and may be wrong.",
            "This app cannot diagnose, treat, or respond to emergencies.",
            "If you are in immediate danger, call 911. For urgent emotional support in the US, "
            "contact the 988 Suicide & Crisis Lifeline (free, 24/7).",
            "You must be 18 or older to use this app.",
            "By continuing, you agree to our Terms of Service and Privacy Policy.",
        ),
        checkboxes=_CHECKBOXES,
    ),
}

EMERGENCY_CONTACTS: dict[str, tuple[EmergencyContact, ...]] = {
    "en-GB": (
        EmergencyContact("Emergency Services", "999", "For immediate danger"),
        EmergencyContact("Samaritans", "116 123", "Free 24/7 emotional support"),
        EmergencyContact("NHS 111", "111", "Non-emergency medical help"),
    ),
    "en-US": (
        EmergencyContact("Emergency Services", "911", "For immediate danger"),
        EmergencyContact("988 Suicide & Crisis Lifeline", "988", "Free 24/7 crisis support"),
        EmergencyContact("Crisis Text Line", "741741", "Text HOME for support"),
    ),
}


def default_locale() -> str:
    """The configured default locale, or en-GB when it has no consent text."""
    if settings.default_locale in CONSENT_TEXT:
        return settings.default_locale
    return FALLBACK_LOCALE


def resolve_locale(locale: str | None) -> str:
    """Map any locale to a supported one, falling back to the default."""
    if locale in CONSENT_TEXT:
        return locale
    return default_locale()


def detect_locale(accept_language: str | None) -> str:
    """Pick a supported locale from an Accept-Language header."""
    if accept_language and "en-US" in accept_language:
        return "en-US"
    return default_locale()


def get_consent_text(locale: str | None = None) -> ConsentText:
    return CONSENT_TEXT[resolve_locale(locale)]


def get_emergency_contacts(locale: str | None = None) -> tuple[EmergencyContact, ...]:
    return EMERGENCY_CONTACTS[resolve_locale(locale)]


def text_hash(locale: str | None = None) -> str:
    """
    Deterministic hash of the consent text shown for a locale.

    The canonical form is compact JSON of the title, bullets and checkbox
    labels, in that key order.
    """
    text = get_consent_text(locale)
    canonical = json.dumps(
        {
            "title": text.title,
            "bullets": list(text.bullets),
            "checkboxes": [c.label for c in text.checkboxes],
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"sha256-{digest}"


def validate_acknowledgements(
    acknowledged_ai_limitations: bool,
    confirmed_not_emergency: bool,
    confirmed_age_over_18: bool,
    accepted_terms_privacy: bool,
) -> ConsentValidation:
    """Return one error per false acknowledgement, in fixed order."""
    values = {
        "acknowledged_ai_limitations": acknowledged_ai_limitations,
        "confirmed_not_emergency": confirmed_not_emergency,
        "confirmed_age_over_18": confirmed_age_over_18,
        "accepted_terms_privacy": accepted_terms_privacy,
    }
    errors = [VALIDATION_MESSAGES[key] for key, _ in ACKNOWLEDGEMENTS if values[key] is not True]
    return ConsentValidation(valid=not errors, errors=errors)


async def accept_consent(
    user_id: str | None,
    db: AsyncSession,
    *,
    consent_version: str,
    acknowledged_ai_limitations: bool,
    confirmed_not_emergency: bool,
    confirmed_age_over_18: bool,
    accepted_terms_privacy: bool,
    locale: str | None = None,
    consent_text_hash: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> UserConsent:
    """
    Record an acceptance and activate consent for the user.

    The consent record and the settings activation are committed together,
    so a failed write leaves neither behind.

    Raises:
        UnauthenticatedError: no current user
        ValidationError: an acknowledgement is false, or the client saw different text
        PersistenceError: the store write failed
    """
    if not user_id:
        raise UnauthenticatedError()

    validation = validate_acknowledgements(
        acknowledged_ai_limitations,
        confirmed_not_emergency,
        confirmed_age_over_18,
        accepted_terms_privacy,
    )
    if not validation.valid:
        raise ValidationError(", ".join(validation.errors), errors=validation.errors)

    if not consent_version:
        raise ValidationError("Consent version is required", field="consent_version")

    resolved_locale = resolve_locale(locale)
    expected_hash = text_hash(resolved_locale)
    if consent_text_hash is not None and consent_text_hash != expected_hash:
        logger.warning(f"Consent text hash mismatch for user {user_id} (locale {resolved_locale})")
        raise ValidationError(
            "The consent text has changed. Please review it again.",
            field="consent_text_hash",
        )

    record = UserConsent(
        user_id=user_id,
        consent_version=consent_version,
        consent_text_hash=expected_hash,
        acknowledged_ai_limitations=True,
        confirmed_not_emergency=True,
        confirmed_age_over_18=True,
        accepted_terms_privacy=True,
        locale=resolved_locale,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )

    try:
        db.add(record)
        await stage_settings_upsert(user_id, db, has_active_consent=True, consent_version=consent_version)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to store consent for user {user_id}: {e}")
        raise PersistenceError("Failed to store consent record", operation="accept_consent") from e

    logger.info(f"Consent {consent_version} accepted by user {user_id} (locale {resolved_locale})")
    await log_consent_accepted(user_id, consent_version, resolved_locale)
    return record


async def revoke_consent(user_id: str | None, db: AsyncSession) -> str:
    """
    Deactivate consent. Returns the version that was active before.

    The consent records themselves are left untouched.
    """
    if not user_id:
        raise UnauthenticatedError()

    current = await get_user_settings(user_id, db)
    previous_version = current.consent_version or "unknown"

    await upsert_user_settings(user_id, db, has_active_consent=False, consent_version=None)

    logger.info(f"Consent revoked by user {user_id} (was {previous_version})")
    await log_consent_revoked(user_id, previous_version)
    return previous_version


async def get_consent_history(user_id: str, db: AsyncSession) -> list[UserConsent]:
    """Return all consent records for the user, newest first."""
    result = await db.execute(
        select(UserConsent).where(UserConsent.user_id == user_id).order_by(UserConsent.created_at.desc())
    )
    return list(result.scalars().all())
