import secrets
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from retailhub.models.tenant import LicenseKey, LicenseStatus

# No 0/O or 1/I, keys are read aloud and typed by hand.
LICENSE_KEY_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
LICENSE_KEY_GROUPS = 4
LICENSE_KEY_GROUP_SIZE = 4
MAX_KEYS_PER_BATCH = 100


class LicenseValidationError(Exception):
    pass


def generate_license_key() -> str:
    groups = (
        "".join(secrets.choice(LICENSE_KEY_ALPHABET) for _ in range(LICENSE_KEY_GROUP_SIZE))
        for _ in range(LICENSE_KEY_GROUPS)
    )
    return "-".join(groups)


def create_license_key(
    db: Session,
    *,
    expires_at: datetime | None = None,
    purchased_by: str | None = None,
    purchased_email: str | None = None,
) -> LicenseKey:
    while True:
        candidate = generate_license_key()
        if not db.scalar(select(LicenseKey.id).where(LicenseKey.license_key == candidate)):
            break
    license_key = LicenseKey(
        license_key=candidate,
        status=LicenseStatus.ACTIVE,
        expires_at=expires_at,
        purchased_by=purchased_by,
        purchased_email=purchased_email,
    )
    db.add(license_key)
    db.flush()
    return license_key


def create_license_keys(
    db: Session,
    quantity: int,
    *,
    expires_at: datetime | None = None,
    purchased_by: str | None = None,
    purchased_email: str | None = None,
) -> list[LicenseKey]:
    if quantity < 1 or quantity > MAX_KEYS_PER_BATCH:
        raise ValueError(f"Quantity must be between 1 and {MAX_KEYS_PER_BATCH}")
    return [
        create_license_key(
            db,
            expires_at=expires_at,
            purchased_by=purchased_by,
            purchased_email=purchased_email,
        )
        for _ in range(quantity)
    ]


def validate_and_use_license_key(db: Session, raw_key: str, email: str | None) -> LicenseKey:
    """Mark an active license key as used and return it.

    The caller owns the transaction: nothing is committed here, so a failure
    later in the same unit of work leaves the key active.
    """
    normalized = (raw_key or "").strip().upper()
    license_key = db.scalar(select(LicenseKey).where(LicenseKey.license_key == normalized))
    if not license_key or license_key.status == LicenseStatus.REVOKED:
        raise LicenseValidationError("Invalid license key")
    if license_key.status == LicenseStatus.USED:
        raise LicenseValidationError("License key has already been used")
    if license_key.status == LicenseStatus.EXPIRED:
        raise LicenseValidationError("License key has expired")

    now = datetime.utcnow()
    if license_key.expires_at and license_key.expires_at < now:
        # Persisted by the caller only if its transaction commits.
        license_key.status = LicenseStatus.EXPIRED
        raise LicenseValidationError("License key has expired")

    license_key.status = LicenseStatus.USED
    license_key.used_at = now
    if email:
        license_key.purchased_email = email
    db.flush()
    return license_key


def update_license_status(db: Session, license_key: LicenseKey, status: LicenseStatus) -> LicenseKey:
    if license_key.status == LicenseStatus.USED and status == LicenseStatus.ACTIVE:
        raise LicenseValidationError("A used license key cannot be reactivated")
    license_key.status = status
    db.flush()
    return license_key


def expire_stale_license_keys(db: Session) -> int:
    result = db.execute(
        update(LicenseKey)
        .where(
            LicenseKey.status == LicenseStatus.ACTIVE,
            LicenseKey.expires_at.is_not(None),
            LicenseKey.expires_at < datetime.utcnow(),
        )
        .values(status=LicenseStatus.EXPIRED)
    )
    db.commit()
    return result.rowcount or 0
