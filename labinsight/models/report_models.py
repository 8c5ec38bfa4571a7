# /labinsight/models/report_models.py
from datetime import datetime
from labinsight.extensions import db

DEGRADED_SUMMARY = {'severity': 'low', 'summary': 'AI analysis unavailable'}


class Report(db.Model):
    """Uploaded lab report metadata plus the AI summary payload."""
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    file_id = db.Column(db.String(36), unique=True, nullable=False, index=True)
    user_email = db.Column(db.String(255), nullable=False, index=True)

    # File metadata
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(1024), nullable=False)
    embedding_path = db.Column(db.String(1024), default='')

    # AI analysis
    ai_summary = db.Column(db.JSON, default=dict)
    test_results = db.Column(db.JSON, default=list)

    # Doctor review
    doctor_comment = db.Column(db.Text)
    comment_date = db.Column(db.DateTime)
    commented_by = db.Column(db.String(255))

    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @property
    def severity(self):
        summary = self.ai_summary
        return summary.get('severity') if isinstance(summary, dict) else None

    def to_summary_dict(self):
        """Listing view: enough to render a report card."""
        return {
            'file_id': self.file_id,
            'file_name': self.file_name,
            'uploaded_at': self.uploaded_at.isoformat() if self.uploaded_at else None,
            'ai_summary': {'severity': self.severity},
        }

    def to_dict(self):
        """Convert report to dictionary for API responses."""
        return {
            'file_id': self.file_id,
            'user_email': self.user_email,
            'file_name': self.file_name,
            'embedding_path': self.embedding_path or '',
            'ai_summary': self.ai_summary or {},
            'testResults': self.test_results or [],
            'doctor_comment': self.doctor_comment,
            'comment_date': self.comment_date.isoformat() if self.comment_date else None,
            'uploaded_at': self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self):
        return f'<Report {self.file_id}: {self.file_name} for {self.user_email}>'
