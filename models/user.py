"""User model definition."""

from datetime import datetime

from werkzeug.security import check_password_hash, generate_password_hash

from . import db


USER_ROLES = ("user", "admin", "super")
ADMIN_ROLES = ("admin", "super")


def hash_password(password: str) -> str:
    """Return a salted one-way hash of ``password``."""

    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True when ``password`` matches ``password_hash``."""

    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


class User(db.Model):
    """Represents a marketplace account."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    firstname = db.Column(db.String(120), nullable=False)
    lastname = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    dob = db.Column(db.Date, nullable=True)
    role = db.Column(
        db.Enum(*USER_ROLES, name="user_role_enum"),
        nullable=False,
        default="user",
        server_default=db.text("'user'"),
    )
    is_verified = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.text("false"),
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    equipment = db.relationship("Equipment", back_populates="owner", lazy="dynamic")
    saved_list = db.relationship(
        "SavedEquipment",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        """Hash and store the password."""

        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        return verify_password(password, self.password_hash)

    def mark_verified(self) -> None:
        self.is_verified = True

    @property
    def is_privileged(self) -> bool:
        return self.role in ADMIN_ROLES

    def to_dict(self) -> dict:
        """Serialize the user without credentials."""

        return {
            "id": self.id,
            "email": self.email,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "phone": self.phone,
            "dob": self.dob.isoformat() if self.dob else None,
            "role": self.role,
            "is_verified": self.is_verified,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def summary(self) -> dict:
        return {
            "id": self.id,
            "firstname": self.firstname,
            "lastname": self.lastname,
            "email": self.email,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.email}>"
