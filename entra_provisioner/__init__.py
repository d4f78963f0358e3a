"""Provision a Microsoft Entra app registration end to end."""

__version__ = "0.1.0"
