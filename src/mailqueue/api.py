"""Operator HTTP API for the delivery queue."""

import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from .messages import build_test_message
from .service import MailQueueService
from .validators import validate_email_address

logger = logging.getLogger(__name__)


def _error(message: str, status: int, error: str = "InternalServerError"):
    return jsonify({"error": error, "message": message}), status


def create_app(service: MailQueueService) -> Flask:
    """Factory function to create and configure the Flask app."""
    app = Flask(__name__)
    app.extensions["mailqueue"] = service

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy"}), 200

    @app.route('/api/email/queue/stats', methods=['GET'])
    def queue_stats():
        """Entry counts per status and processing timestamps."""
        try:
            stats = service.get_queue_stats()
        except Exception:
            logger.exception("Error retrieving email queue statistics")
            return _error("An error occurred while retrieving email queue statistics", 500)

        logger.info(
            "Email queue stats retrieved: %s pending, %s failed, %s sent",
            stats.pending, stats.failed, stats.sent,
        )
        return jsonify(stats.to_dict()), 200

    @app.route('/api/email/queue/process', methods=['POST'])
    def process_queue():
        """Run one dispatch batch on demand."""
        batch_size = request.args.get('batch_size', default=service.queue_config.batch_size, type=int)
        if batch_size is None or batch_size < 1:
            return _error("batch_size must be a positive integer", 400, error="BadRequest")

        try:
            processed = service.process_queue(batch_size)
        except Exception:
            logger.exception("Error processing email queue manually")
            return _error("An error occurred while processing the email queue", 500)

        return jsonify({
            "processed_count": processed,
            "processed_at": datetime.now(timezone.utc).isoformat(),
            "batch_size": batch_size,
        }), 200

    @app.route('/api/email/test', methods=['POST'])
    def test_transport():
        """Connectivity probe against the configured transport."""
        is_working = service.test_transport()
        return jsonify({
            "is_working": is_working,
            "tested_at": datetime.now(timezone.utc).isoformat(),
            "message": "Email service is working correctly" if is_working else "Email service test failed",
        }), 200

    @app.route('/api/email/send-test', methods=['POST'])
    def send_test():
        """Send a test message immediately, bypassing the queue."""
        data = request.get_json(silent=True) or {}
        recipient = data.get('to')
        if not recipient:
            return _error("Recipient 'to' is required", 400, error="BadRequest")

        is_valid, normalized = validate_email_address(recipient)
        if not is_valid:
            return _error(f"Invalid email address: {normalized}", 400, error="BadRequest")

        try:
            result = service.send_now(build_test_message(normalized))
        except Exception:
            logger.exception("Error sending test email")
            return _error("An error occurred while sending the test email", 500)

        return jsonify(result.to_dict()), 200

    return app
