"""
Per-tenant sync status

Answers: "When did this shop last sync, and is it healthy?"
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Boolean, Text, ForeignKey, Uuid

from shopsync.models.base import Base, utcnow


class TenantSyncStatus(Base):
    """
    Track full-sync status for each tenant

    Monitors last sync time, success/failure, error messages
    """
    __tablename__ = "tenant_sync_status"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), unique=True, index=True, nullable=False)

    # Sync status
    last_sync_attempt = Column(DateTime, index=True)
    last_successful_sync = Column(DateTime, index=True, nullable=True)
    sync_status = Column(String, index=True)  # in_progress, success, failed

    # Sync metrics
    customers_synced = Column(Integer, default=0)
    orders_synced = Column(Integer, default=0)
    products_synced = Column(Integer, default=0)
    records_skipped = Column(Integer, default=0)
    sync_duration_seconds = Column(Float, nullable=True)

    # Error tracking
    last_error = Column(Text, nullable=True)
    error_count = Column(Integer, default=0)  # Consecutive errors
    first_error_at = Column(DateTime, nullable=True)

    # Health indicators
    is_healthy = Column(Boolean, default=True, index=True)
    health_score = Column(Integer, default=100)  # 0-100
    health_issues = Column(JSON, nullable=True)  # List of issues

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
