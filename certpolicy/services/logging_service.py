"""
Logging and audit service for the certificate trust-policy evaluator.
"""
import json
import logging
import logging.handlers
import sys
import threading
import traceback
from collections import deque
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from ..security.models import ValidationOutcome


@dataclass
class LogEntry:
    """Structured log entry for JSON logging."""
    timestamp: str
    level: str
    logger_name: str
    message: str
    module: str
    function: str
    line_number: int
    thread_id: int
    process_id: int
    extra_data: Optional[Dict[str, Any]] = None
    exception_info: Optional[Dict[str, Any]] = None


@dataclass
class AuditRecord:
    """Outcome of one chain evaluation, kept for diagnostics."""
    timestamp: str
    authenticated: bool
    subject: Optional[str]
    reasons: List[str] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    source: Optional[str] = None


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            module=record.module,
            function=record.funcName,
            line_number=record.lineno,
            thread_id=record.thread,
            process_id=record.process,
            extra_data=getattr(record, 'extra_data', None)
        )

        if record.exc_info:
            log_entry.exception_info = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(asdict(log_entry), default=str)


class AuditTrail:
    """Bounded, thread-safe history of chain evaluation outcomes."""

    def __init__(self, max_records: int = 1000):
        self.records = deque(maxlen=max_records)
        self.lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def record(self, outcome: ValidationOutcome, source: Optional[str] = None) -> AuditRecord:
        """Store the outcome of one evaluation."""
        audit_record = AuditRecord(
            timestamp=datetime.now().isoformat(),
            authenticated=outcome.authenticated,
            subject=outcome.leaf.subject_dn if outcome.leaf else None,
            reasons=[reason.value for reason in outcome.reasons],
            failures=[failure.to_dict() for failure in outcome.failures],
            source=source
        )

        with self.lock:
            self.records.append(audit_record)

        if not outcome.authenticated:
            self.logger.info(
                f"Rejected certificate chain: {', '.join(audit_record.reasons) or 'unknown reason'}",
                extra={'extra_data': asdict(audit_record)}
            )
        return audit_record

    def get_records(self, authenticated: Optional[bool] = None,
                    since: Optional[datetime] = None) -> List[AuditRecord]:
        """Get audit records with optional filtering."""
        with self.lock:
            filtered = list(self.records)

        if authenticated is not None:
            filtered = [r for r in filtered if r.authenticated == authenticated]

        if since:
            since_iso = since.isoformat()
            filtered = [r for r in filtered if r.timestamp >= since_iso]

        return filtered

    def get_failure_summary(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Count rejections per failure reason."""
        rejected = self.get_records(authenticated=False, since=since)

        if not rejected:
            return {'total_rejections': 0, 'reasons': {}}

        reasons = {}
        for audit_record in rejected:
            for reason in audit_record.reasons:
                reasons[reason] = reasons.get(reason, 0) + 1

        return {
            'total_rejections': len(rejected),
            'reasons': reasons,
            'most_common_reason': max(reasons.items(), key=lambda x: x[1])[0] if reasons else None
        }

    def clear(self):
        with self.lock:
            self.records.clear()


class LoggingService:
    """Sets up application logging and owns the evaluation audit trail."""

    def __init__(self, config):
        """Initialize logging service with configuration."""
        self.config = config
        self.audit_trail = AuditTrail()
        self._setup_logging()
        self.logger = logging.getLogger(__name__)
        self.logger.info("Logging service initialized")

    def _setup_logging(self):
        """Configure root logger handlers."""
        log_dir = Path(self.config.log_file_path).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger.setLevel(log_level)

        json_formatter = JSONFormatter()
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        file_handler = logging.handlers.RotatingFileHandler(
            filename=self.config.log_file_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(json_formatter)
        file_handler.setLevel(log_level)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(log_level)

        # Rejections and errors only
        error_log_path = str(Path(self.config.log_file_path).with_suffix('.errors.log'))
        error_handler = logging.handlers.RotatingFileHandler(
            filename=error_log_path,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setFormatter(json_formatter)
        error_handler.setLevel(logging.WARNING)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)
        root_logger.addHandler(error_handler)
