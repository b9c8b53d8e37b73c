"""
Security logging module.

This module provides specialized logging for quiz access events such as
eligibility denials, window violations and forced auto-submits.
"""

from flask import request, current_app, has_request_context
import json

from campusquiz.common.clock import utcnow


def _remote_addr() -> str:
    if has_request_context():
        return request.remote_addr or "unknown"
    return "server"


class SecurityLogger:
    """
    Security event logger.

    Logs quiz access events for monitoring and auditing. Safe to call from
    CLI commands, where there is no request.
    """

    @staticmethod
    def log_unauthorized_access(resource: str, user_id: int = None):
        """
        Log unauthorized access attempt.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {_remote_addr()}, "
            f"Time: {utcnow().isoformat()}"
        )

    @staticmethod
    def log_not_eligible(quiz_id: int, student_id: int):
        """
        Log a start or view request from a student outside the quiz's groups.

        Args:
            quiz_id: Quiz ID
            student_id: Student user ID
        """
        current_app.logger.warning(
            f"SECURITY: Not eligible - Quiz ID: {quiz_id}, "
            f"Student ID: {student_id}, IP: {_remote_addr()}, "
            f"Time: {utcnow().isoformat()}"
        )

    @staticmethod
    def log_window_violation(quiz_id: int, student_id: int, action: str, state: str):
        """
        Log an action attempted outside the quiz window.

        Args:
            quiz_id: Quiz ID
            student_id: Student user ID
            action: start, answer or submit
            state: Window label at the time of the request
        """
        current_app.logger.info(
            f"SECURITY: Window closed - Quiz ID: {quiz_id}, "
            f"Student ID: {student_id}, Action: {action}, State: {state}, "
            f"IP: {_remote_addr()}, Time: {utcnow().isoformat()}"
        )

    @staticmethod
    def log_forced_submit(submission_id: int, quiz_id: int, student_id: int, deadline):
        """
        Log a server-driven submit at the attempt deadline.

        Args:
            submission_id: Submission ID
            quiz_id: Quiz ID
            student_id: Student user ID
            deadline: Instant recorded as the submit time
        """
        current_app.logger.info(
            f"SECURITY: Forced submit - Submission ID: {submission_id}, "
            f"Quiz ID: {quiz_id}, Student ID: {student_id}, "
            f"Deadline: {deadline.isoformat()}, Time: {utcnow().isoformat()}"
        )

    @staticmethod
    def log_suspicious_activity(activity_type: str, details: dict):
        """
        Log suspicious activity.

        Args:
            activity_type: Type of suspicious activity
            details: Additional details as dictionary
        """
        current_app.logger.warning(
            f"SECURITY: Suspicious activity - Type: {activity_type}, "
            f"IP: {_remote_addr()}, Details: {json.dumps(details, default=str)}, "
            f"Time: {utcnow().isoformat()}"
        )
