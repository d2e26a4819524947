"""Accessors for the services wired onto ``app.state`` by ``create_app``."""

from __future__ import annotations

from fastapi import Request

from src.agents.extraction import DataPointExtractor
from src.agents.report_analyzer import ReportAnalyzer
from src.reports.service import ReportService


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def get_extractor(request: Request) -> DataPointExtractor:
    return request.app.state.extractor


def get_report_analyzer(request: Request) -> ReportAnalyzer:
    return request.app.state.report_analyzer
