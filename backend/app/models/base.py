from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import declared_attr

from ..extensions import db
from app.time_utils import to_utc_z


# Quantities may be fractional (weighed goods); money keeps 4 places so that
# prorated return amounts survive a round-trip through the database.
Quantity = db.Numeric(18, 4)
Money = db.Numeric(18, 4)


def dec(value) -> str | None:
    """Serialize a Decimal without float loss."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return format(value.normalize(), "f")


class AuditMixin:
    """
    created / updated / approved / deleted quadruple shared by every
    business document header.

    Deletion is a soft delete (status CANCELLED + deleted_* + del_reason).
    """

    @declared_attr
    def created_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @declared_attr
    def updated_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @declared_attr
    def approved_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    @declared_attr
    def deleted_by(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    del_reason = db.Column(db.Text, nullable=True)

    def audit_dict(self) -> dict:
        return {
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "deleted_by": self.deleted_by,
            "deleted_at": to_utc_z(self.deleted_at),
            "del_reason": self.del_reason,
        }
