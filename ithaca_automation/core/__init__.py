"""Resilient request, retry, account and bridge orchestration components"""
