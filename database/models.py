"""AdPulse DB models. (SQLite/PostgreSQL compatible)"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


# ─────────────────────────────────────────────
# 1. Ads (one row per ad per ad account)
# ─────────────────────────────────────────────
class Ad(Base):
    __tablename__ = "ads"

    id = Column(Integer, primary_key=True)
    ad_id = Column(String(100), nullable=False, unique=True)
    account_id = Column(String(100))
    brand = Column(String(200), index=True)
    ad_name = Column(String(500))
    ad_title = Column(String(500))
    ad_text = Column(Text)
    angle_type = Column(String(100))
    media_url = Column(String(1000))
    image_url = Column(String(1000))
    video_url = Column(String(1000))
    post_link = Column(String(1000))
    platform = Column(String(50))
    explanation = Column(Text)
    created_at = Column(DateTime(timezone=True))
    # legacy / unmapped source columns (angel_type, "Angle Type", ...)
    extra_data = Column(JSON, default=dict)


# ─────────────────────────────────────────────
# 2. Comments (ad_id is a soft reference, orphans allowed)
# ─────────────────────────────────────────────
class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    comment_id = Column(String(100), nullable=False, unique=True)
    ad_id = Column(String(100), index=True)
    brand = Column(String(200), index=True)
    message = Column(Text)
    sentiment = Column(String(30))
    theme = Column(String(200))
    created_time = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    extra_data = Column(JSON, default=dict)

    __table_args__ = (
        Index("ix_comments_brand_created", "brand", "created_time"),
    )


# ─────────────────────────────────────────────
# 3. Comment clusters (named topic groups)
# ─────────────────────────────────────────────
class CommentCluster(Base):
    __tablename__ = "comment_clusters"

    id = Column(Integer, primary_key=True)
    cluster_name = Column(String(200))
    cluster_description = Column(Text)
    meta_cluster = Column(String(200))
    comment = Column(Text)
    ad = Column(Text)
    ad_id = Column(String(100))
    comment_id = Column(String(100), index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)


class ClusterComment(Base):
    __tablename__ = "cluster_comments"

    id = Column(Integer, primary_key=True)
    comment_id = Column(String(100), index=True)


# ─────────────────────────────────────────────
# 4. Report snapshots (metadata row + JSON blob)
# ─────────────────────────────────────────────
class ReportMetadata(Base):
    __tablename__ = "report_metadata"

    id = Column(String(36), primary_key=True)
    title = Column(String(300), nullable=False)
    brand = Column(String(200))
    created = Column(DateTime(timezone=True), default=datetime.utcnow)
    ad_count = Column(Integer, default=0)

    report = relationship(
        "Report", back_populates="report_metadata", uselist=False,
        cascade="all, delete-orphan",
    )


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(36), ForeignKey("report_metadata.id", ondelete="CASCADE"), primary_key=True)
    data = Column(JSON, nullable=False)

    report_metadata = relationship("ReportMetadata", back_populates="report")


# ─────────────────────────────────────────────
# 5. Ad-hoc dashboards (key -> JSON blob)
# ─────────────────────────────────────────────
class Dashboard(Base):
    __tablename__ = "dashboards"

    id = Column(String(36), primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
