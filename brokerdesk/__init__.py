"""Brokerage back office: client pipeline and appointment scheduling engine."""
