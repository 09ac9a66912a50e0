"""Build Docker images with Kaniko, test them with Goss and Trivy, and gather reports."""

__version__ = "0.1.0"