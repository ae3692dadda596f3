"""Conversation — chat scenario and requester-facing texts."""
