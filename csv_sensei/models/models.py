from datetime import datetime
from sqlalchemy import Enum as SAEnum, case, func
from ..extensions import db


FEATURE_NAMES = ("op_billing", "doctor_roster", "compliance_ai")
FeatureNameEnum = SAEnum(*FEATURE_NAMES, name="feature_name_enum")

DEFAULT_TOGGLES = (
    {
        "feature_name": "op_billing",
        "display_name": "OP Billing",
        "description": "Outpatient billing management system",
    },
    {
        "feature_name": "doctor_roster",
        "display_name": "Doctor Roster",
        "description": "Doctor roster and scheduling management",
    },
    {
        "feature_name": "compliance_ai",
        "display_name": "Compliance AI",
        "description": "AI-powered compliance monitoring and reporting",
    },
)


class FeatureToggle(db.Model):
    __tablename__ = "feature_toggles"
    __table_args__ = {"sqlite_autoincrement": True}
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    feature_name = db.Column(FeatureNameEnum, unique=True, nullable=False)
    is_enabled = db.Column(db.Boolean, default=True, nullable=False)
    display_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.String(512), nullable=False)
    last_modified_by = db.Column(db.String(128), default="system", nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "featureName": self.feature_name,
            "isEnabled": bool(self.is_enabled),
            "displayName": self.display_name,
            "description": self.description,
            "lastModifiedBy": self.last_modified_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @staticmethod
    def default_dicts() -> list[dict]:
        now = datetime.utcnow().isoformat()
        return [
            {
                "featureName": d["feature_name"],
                "isEnabled": True,
                "displayName": d["display_name"],
                "description": d["description"],
                "lastModifiedBy": "system",
                "createdAt": now,
                "updatedAt": now,
            }
            for d in DEFAULT_TOGGLES
        ]

    @classmethod
    def ensure_defaults(cls, modified_by: str = "system") -> list["FeatureToggle"]:
        toggles = cls.query.order_by(cls.feature_name).all()
        if toggles:
            return toggles
        for d in DEFAULT_TOGGLES:
            db.session.add(cls(is_enabled=True, last_modified_by=modified_by, **d))
        db.session.commit()
        return cls.query.order_by(cls.feature_name).all()

    @classmethod
    def update_toggle(cls, feature_name: str, is_enabled: bool, modified_by: str) -> "FeatureToggle":
        toggle = cls.query.filter_by(feature_name=feature_name).first()
        if toggle is None:
            defaults = next(d for d in DEFAULT_TOGGLES if d["feature_name"] == feature_name)
            toggle = cls(**defaults)
            db.session.add(toggle)
        toggle.is_enabled = is_enabled
        toggle.last_modified_by = modified_by
        return toggle

    @classmethod
    def is_feature_enabled(cls, feature_name: str) -> bool:
        toggle = cls.query.filter_by(feature_name=feature_name).first()
        # no stored row means the default, which is enabled
        return True if toggle is None else bool(toggle.is_enabled)


class UsageTracking(db.Model):
    __tablename__ = "usage_tracking"
    __table_args__ = {"sqlite_autoincrement": True}
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.String(128), index=True, nullable=False)
    schema_type = db.Column(db.String(64), index=True, nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, default=0, nullable=False)
    row_count = db.Column(db.Integer, default=0, nullable=False)
    processing_time = db.Column(db.Float, default=0.0, nullable=False)  # ms
    success = db.Column(db.Boolean, default=True, nullable=False)
    error_message = db.Column(db.Text)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(512))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True, nullable=False)

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "schemaType": self.schema_type,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "rowCount": self.row_count,
            "processingTime": self.processing_time,
            "success": bool(self.success),
            "errorMessage": self.error_message,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def schema_stats(cls) -> list[dict]:
        rows = (
            db.session.query(
                cls.schema_type,
                func.count(cls.id),
                func.sum(case((cls.success.is_(True), 1), else_=0)),
                func.sum(cls.row_count),
                func.avg(cls.processing_time),
                func.count(func.distinct(cls.user_id)),
            )
            .group_by(cls.schema_type)
            .order_by(cls.schema_type)
            .all()
        )
        return [
            {
                "schemaType": schema_type,
                "totalUses": int(total or 0),
                "successfulUses": int(successful or 0),
                "totalRows": int(total_rows or 0),
                "avgProcessingTime": float(avg_ms or 0.0),
                "uniqueUsers": int(users or 0),
            }
            for schema_type, total, successful, total_rows, avg_ms, users in rows
        ]

    @classmethod
    def user_stats(cls) -> list[dict]:
        rows = (
            db.session.query(
                cls.user_id,
                func.count(cls.id),
                func.sum(case((cls.success.is_(True), 1), else_=0)),
                func.max(cls.created_at),
            )
            .group_by(cls.user_id)
            .order_by(func.count(cls.id).desc())
            .all()
        )
        out = []
        for user_id, total, successful, last_used in rows:
            schemas = [
                s for (s,) in db.session.query(cls.schema_type).filter_by(user_id=user_id).distinct().order_by(cls.schema_type)
            ]
            out.append({
                "userId": user_id,
                "totalUses": int(total or 0),
                "successfulUses": int(successful or 0),
                "schemasUsed": schemas,
                "lastUsed": last_used.isoformat() if last_used else None,
            })
        return out

    @classmethod
    def recent_activity(cls, limit: int = 10) -> list[dict]:
        return [u.to_dict() for u in cls.query.order_by(cls.created_at.desc(), cls.id.desc()).limit(limit).all()]
