# /labinsight/utils/ai_client.py
import os
import requests
from flask import current_app
from labinsight.utils.errors import UpstreamUnavailable


class AnalysisServiceClient:
    """Client for the external lab-report analysis microservice."""

    def __init__(self, app=None):
        self.url = None
        self.timeout = 120
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Reads the service location and timeout from the app config."""
        self.url = app.config.get('AI_SERVICE_URL')
        self.timeout = app.config.get('AI_SERVICE_TIMEOUT', 120)

    def analyze(self, file_path, file_name):
        """
        Sends a stored report to the analysis service.

        Args:
            file_path: Path of the saved upload on local disk
            file_name: Name to report to the service

        Returns:
            dict: 'ai_summary', 'testResults' and 'embedding_path'

        Raises:
            UpstreamUnavailable: the service is unreachable, timed out or
                answered with something other than a JSON object
                carrying an object summary and a list of results
        """
        if not self.url:
            raise UpstreamUnavailable('AI service URL is not configured')

        try:
            with open(os.path.abspath(file_path), 'rb') as report_file:
                response = requests.post(
                    self.url,
                    files={'file': (file_name, report_file)},
                    data={'filename': file_name},
                    timeout=self.timeout,
                )
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, OSError, ValueError) as e:
            current_app.logger.error(f"AI service error: {e}")
            raise UpstreamUnavailable('AI analysis service unavailable') from e

        if not isinstance(payload, dict):
            current_app.logger.error("AI service returned a non-object payload")
            raise UpstreamUnavailable('AI analysis service returned an invalid payload')

        ai_summary = payload.get('ai_summary') or {}
        test_results = payload.get('testResults') or []
        embedding_path = payload.get('embedding_path') or ''
        if (not isinstance(ai_summary, dict) or not isinstance(test_results, list)
                or not isinstance(embedding_path, str)):
            current_app.logger.error("AI service returned a malformed analysis")
            raise UpstreamUnavailable('AI analysis service returned an invalid payload')

        return {
            'ai_summary': ai_summary,
            'testResults': test_results,
            'embedding_path': embedding_path,
        }


# Create a single, uninitialized instance to be imported by other modules.
analysis_client = AnalysisServiceClient()
