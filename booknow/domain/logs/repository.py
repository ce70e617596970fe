"""Log repository - Queries over the error and email logs"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import EmailLog, ErrorLog


class ErrorLogRepository:
    """Repository for error log queries"""

    @staticmethod
    def filtered(
        db: Session,
        level: Optional[str] = None,
        source: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
    ):
        query = db.query(ErrorLog)
        if level:
            query = query.filter(ErrorLog.error_level == level.upper())
        if source:
            query = query.filter(ErrorLog.error_source == source)
        if date_from:
            query = query.filter(ErrorLog.created_at >= date_from)
        if date_to:
            query = query.filter(ErrorLog.created_at <= date_to)
        if search:
            query = query.filter(ErrorLog.error_message.ilike(f"%{search}%"))
        return query

    @staticmethod
    def count_by_level(db: Session) -> dict:
        return dict(db.query(ErrorLog.error_level, func.count(ErrorLog.id)).group_by(ErrorLog.error_level).all())

    @staticmethod
    def top_sources(db: Session, limit: int = 10) -> list[tuple[str, int]]:
        count = func.count(ErrorLog.id)
        return (
            db.query(ErrorLog.error_source, count)
            .filter(ErrorLog.error_source.isnot(None))
            .group_by(ErrorLog.error_source)
            .order_by(count.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_since(db: Session, since: datetime) -> int:
        return db.query(func.count(ErrorLog.id)).filter(ErrorLog.created_at >= since).scalar() or 0

    @staticmethod
    def get_sources(db: Session) -> list[str]:
        rows = (
            db.query(ErrorLog.error_source)
            .filter(ErrorLog.error_source.isnot(None))
            .distinct()
            .order_by(ErrorLog.error_source)
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def delete_before(db: Session, cutoff: datetime) -> int:
        deleted = db.query(ErrorLog).filter(ErrorLog.created_at < cutoff).delete(synchronize_session=False)
        db.commit()
        return deleted


class EmailLogRepository:
    """Repository for email log queries"""

    @staticmethod
    def filtered(
        db: Session,
        email_type: Optional[str] = None,
        status: Optional[str] = None,
        booking_id: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
    ):
        query = db.query(EmailLog)
        if email_type:
            query = query.filter(EmailLog.email_type == email_type)
        if status:
            query = query.filter(EmailLog.status == status)
        if booking_id:
            query = query.filter(EmailLog.booking_id == booking_id)
        if date_from:
            query = query.filter(EmailLog.sent_at >= date_from)
        if date_to:
            query = query.filter(EmailLog.sent_at <= date_to)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(EmailLog.recipient_email.ilike(pattern), EmailLog.subject.ilike(pattern)))
        return query

    @staticmethod
    def get_by_id(db: Session, log_id: int) -> Optional[EmailLog]:
        return db.query(EmailLog).filter(EmailLog.id == log_id).first()

    @staticmethod
    def count_by(db: Session, column) -> dict:
        return dict(db.query(column, func.count(EmailLog.id)).group_by(column).all())

    @staticmethod
    def count_since(db: Session, since: datetime) -> int:
        return db.query(func.count(EmailLog.id)).filter(EmailLog.sent_at >= since).scalar() or 0

    @staticmethod
    def delete_before(db: Session, cutoff: datetime) -> int:
        deleted = db.query(EmailLog).filter(EmailLog.sent_at < cutoff).delete(synchronize_session=False)
        db.commit()
        return deleted
