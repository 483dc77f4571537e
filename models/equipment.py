"""Equipment listing model."""

from datetime import datetime

from sqlalchemy import or_

from . import db


class Equipment(db.Model):
    """A piece of medical equipment listed in the catalog.

    ``save_count`` is the popularity counter: the number of users that
    currently hold this item in their saved list.
    """

    __tablename__ = "equipment"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(120), nullable=False, index=True)
    specification = db.Column(db.Text, nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    use_cases = db.Column(db.Text, nullable=False)
    save_count = db.Column(
        db.Integer, nullable=False, default=0, server_default=db.text("0")
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    owner = db.relationship("User", back_populates="equipment")

    def to_dict(self, include_owner: bool = False) -> dict:
        """Serialize the equipment to a dictionary."""

        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "specification": self.specification,
            "images": list(self.images or []),
            "tags": list(self.tags or []),
            "use_cases": self.use_cases,
            "save_count": self.save_count or 0,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_owner:
            data["owner"] = self.owner.summary() if self.owner else None
        return data

    @staticmethod
    def adjust_save_count(equipment_ids, delta: int) -> int:
        """Add ``delta`` to ``save_count`` in SQL so concurrent saves do not lose updates.

        Decrements never take a counter below zero. Returns the number of rows changed.
        """

        ids = list(equipment_ids)
        if not ids or not delta:
            return 0
        query = Equipment.query.filter(Equipment.id.in_(ids))
        if delta < 0:
            query = query.filter(Equipment.save_count >= -delta)
        return query.update(
            {Equipment.save_count: Equipment.save_count + delta},
            synchronize_session="fetch",
        )

    @staticmethod
    def search_filter(query, name=None, category=None, term=None):
        """Apply case-insensitive substring predicates on name and category."""

        name_col = db.func.lower(Equipment.name)
        category_col = db.func.lower(Equipment.category)

        if name:
            query = query.filter(name_col.contains(name.lower(), autoescape=True))
        if category:
            query = query.filter(
                category_col.contains(category.lower(), autoescape=True)
            )
        if term:
            term = term.lower()
            query = query.filter(
                or_(
                    name_col.contains(term, autoescape=True),
                    category_col.contains(term, autoescape=True),
                )
            )
        return query

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Equipment id={self.id} name={self.name!r}>"
