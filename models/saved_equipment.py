"""Per-user saved equipment list."""

from datetime import datetime

from . import db


class SavedEquipment(db.Model):
    """The bookmarked equipment ids of a single user (one row per user)."""

    __tablename__ = "saved_equipment"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True
    )
    equipment_ids = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user = db.relationship("User", back_populates="saved_list")

    def contains(self, equipment_id: int) -> bool:
        return equipment_id in (self.equipment_ids or [])

    def add(self, equipment_id: int) -> bool:
        """Append ``equipment_id`` unless present. Return True if it was added."""

        current = list(self.equipment_ids or [])
        if equipment_id in current:
            return False
        current.append(equipment_id)
        # Reassign so the JSON column registers the change.
        self.equipment_ids = current
        return True

    def remove(self, equipment_id: int) -> bool:
        """Drop ``equipment_id`` if present. Return True if it was removed."""

        current = list(self.equipment_ids or [])
        if equipment_id not in current:
            return False
        self.equipment_ids = [item for item in current if item != equipment_id]
        return True

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "equipment_ids": list(self.equipment_ids or []),
        }
