"""Reporting utilities."""

from .reports import build_error_report, build_error_report_with_validation, build_success_report

__all__ = ["build_error_report", "build_error_report_with_validation", "build_success_report"]
