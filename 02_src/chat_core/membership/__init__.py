"""Membership module."""

from .membership import IMembershipService, MembershipService

__all__ = ["IMembershipService", "MembershipService"]
